"""Tests for the sld-tool command line."""

import json

import pytest

from sldcore.cli import main
from sldcore.models import Network
from tests.conftest import make_bus, make_cable, make_switch, write_network


def run(capsys, *argv):
    with pytest.raises(SystemExit) as exc:
        main(list(argv))
    return exc.value.code, json.loads(capsys.readouterr().out)


class TestValidateCommand:
    def test_valid_network(self, tmp_path, capsys, simple_network):
        path = write_network(tmp_path / "net.json", simple_network)
        code, out = run(capsys, "validate", path)
        assert code == 0
        assert out["status"] == "ok"
        assert out["summary"]["valid"] is True

    def test_invalid_network_exits_nonzero(self, tmp_path, capsys):
        network = Network(
            buses=[make_bus("A"), make_bus("B"), make_bus("D")],
            cables=[make_cable("C1", "A", "S1")],
            switches=[make_switch("S1", "B", "D")],
        )
        code, out = run(capsys, "validate", write_network(tmp_path / "net.json", network))
        assert code == 1
        assert out["status"] == "invalid"
        assert out["errors"][0]["code"] == "BIDIRECTIONAL_MISMATCH"

    def test_missing_file(self, tmp_path, capsys):
        code, out = run(capsys, "validate", str(tmp_path / "nope.json"))
        assert code == 2
        assert out["status"] == "error"
        assert "File not found" in out["error"]

    def test_bad_json(self, tmp_path, capsys):
        path = tmp_path / "net.json"
        path.write_text("{not json")
        code, out = run(capsys, "validate", str(path))
        assert code == 2
        assert "Invalid JSON" in out["error"]

    def test_legacy_field_names(self, tmp_path, capsys):
        path = tmp_path / "net.json"
        path.write_text(json.dumps({
            "Buses": [{"Tag": "A", "Category": "Swing"}, {"Tag": "B", "SLDY": 1}],
            "Cables": [{"Tag": "C1", "FromElement": "A", "ToElement": "B"}],
        }))
        code, out = run(capsys, "process", str(path))
        assert code == 0
        assert out["branches"][0]["from_bus"] == "A"


class TestProcessAndLayout:
    def test_process(self, tmp_path, capsys, switched_network):
        code, out = run(capsys, "process", write_network(tmp_path / "net.json", switched_network))
        assert code == 0
        assert out["success"] is True

    def test_layout(self, tmp_path, capsys, simple_network):
        path = write_network(tmp_path / "net.json", simple_network)
        code, out = run(capsys, "layout", path, "--left-spacing", "0", "--emit-saved")
        assert code == 0
        assert out["element_coordinates"]["C1"] == {"x": 100, "y": 170}
        assert out["saved_coordinates"][0]["property_json"] == '{"x":100,"y":100}'

    def test_layout_with_saved_coordinates(self, tmp_path, capsys, simple_network):
        path = write_network(tmp_path / "net.json", simple_network)
        saved = tmp_path / "saved.json"
        saved.write_text(json.dumps([
            {"Tag": "C1", "Type": "cable", "SLD": "Key", "PropertyJSON": '{"x":1,"y":2}'},
        ]))
        code, out = run(capsys, "layout", path, "--saved", str(saved))
        assert code == 0
        assert out["element_coordinates"]["C1"] == {"x": 1, "y": 2}

    def test_layout_refuses_invalid_network(self, tmp_path, capsys):
        network = Network(buses=[make_bus("A")], cables=[make_cable("C1", "A", None)])
        code, out = run(capsys, "layout", write_network(tmp_path / "net.json", network))
        assert code == 1
        assert out["status"] == "error"
        assert out["error"].startswith("Validation failed with 1 error(s)")


class TestAnalysisCommands:
    def test_trace(self, tmp_path, capsys, switched_network):
        path = write_network(tmp_path / "net.json", switched_network)
        code, out = run(capsys, "trace", path, "--tag", "C1", "--direction", "to")
        assert code == 0
        assert out["terminating_bus"] == "B"
        assert [s["tag"] for s in out["steps"]] == ["F1"]

    def test_trace_bad_direction(self, tmp_path, capsys, switched_network):
        path = write_network(tmp_path / "net.json", switched_network)
        code, out = run(capsys, "trace", path, "--tag", "C1", "--direction", "up")
        assert code == 2
        assert out["status"] == "error"

    def test_trace_to_source(self, tmp_path, capsys, radial_network):
        path = write_network(tmp_path / "net.json", radial_network)
        code, out = run(capsys, "trace", path, "--tag", "T1", "--to-source")
        assert code == 0
        assert out["traces"][0]["terminating_bus"] == "A"

    def test_candidates(self, tmp_path, capsys, simple_network):
        simple_network.switches.append(make_switch("S1", "A", None))
        path = write_network(tmp_path / "net.json", simple_network)
        code, out = run(capsys, "candidates", path, "--tag", "S1", "--side", "To")
        assert code == 0
        assert out["side"] == "to"
        assert [c["tag"] for c in out["candidates"]] == ["B"]

    def test_summarize(self, tmp_path, capsys, radial_network):
        path = write_network(tmp_path / "net.json", radial_network)
        code, out = run(capsys, "summarize", path)
        assert code == 0
        assert out["processed"] is True
        assert out["summary"]["independent_networks"] == 1
