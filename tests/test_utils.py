from sumpbfm.utils import ascii_to_dwords, dword_to_ascii, hex32, words_to_name


def test_dword_to_ascii_msb_first():
    assert dword_to_ascii(0x68756230) == "hub0"


def test_name_from_words():
    words = ascii_to_dwords("dut_hub_slow")
    assert words[0] == 0x6475745F
    assert words_to_name(words) == "dut_hub_slow"


def test_short_name_padded():
    assert words_to_name(ascii_to_dwords("pod")) == "pod" + " " * 9


def test_failed_reads_skipped():
    assert words_to_name([0x61626364, None, 0x65666768]) == "abcdefgh"


def test_hex32():
    assert hex32(None) is None
    assert hex32(0xBEEF) == "0x0000BEEF"
