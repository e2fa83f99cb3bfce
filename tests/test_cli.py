import json

from sumpbfm.cli import main


def test_enumerate_json(capsys):
    assert main(["enumerate", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [hub["name"] for hub in data["hubs"]] == ["dut_hub_slow", "ctr_hub_fast"]


def test_enumerate_text_with_glitch(capsys):
    assert main(["enumerate", "--glitch", "0"]) == 0
    out = capsys.readouterr().out
    assert "hub 0: 'dut_hub_slow' pods=0" in out
    assert "pod 0:0: 'dut_fsm_pod0'" in out


def test_capture_with_plot(tmp_path, capsys):
    png = tmp_path / "capture.png"
    assert main(["capture", "--trigger", "ext_rising", "--post", "0", "--plot", str(png)]) == 0
    out = capsys.readouterr().out
    assert "Acquired: True" in out
    assert png.exists()


def test_capture_bad_trigger(capsys):
    assert main(["capture", "--trigger", "sideways"]) == 2
    assert capsys.readouterr().out.startswith("Error:")


def test_missing_config(tmp_path, capsys):
    assert main(["selftest", "--config", str(tmp_path / "missing.json")]) == 2
    assert "Error:" in capsys.readouterr().out


def test_selftest_subset_json(capsys):
    assert main(["selftest", "--only", "hw_id", "pod_readback", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["passed"] is True
    assert data["total"] == 2
