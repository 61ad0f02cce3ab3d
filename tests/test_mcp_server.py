"""Tests for the MCP server tools (backend calls are faked)."""

import importlib.util
import json
import sys
from pathlib import Path

import httpx
import pytest

from tests.conftest import write_network

# mcp-server/ is not a package; load the module from its file.
_mod_path = Path(__file__).resolve().parent.parent / "mcp-server" / "server.py"
_spec = importlib.util.spec_from_file_location("sld_mcp_server", _mod_path)
_mod = importlib.util.module_from_spec(_spec)
sys.modules.setdefault("sld_mcp_server", _mod)
_spec.loader.exec_module(_mod)


@pytest.fixture
def calls(monkeypatch):
    """Record api_request calls and answer with an echo."""
    recorded = []

    def fake_api_request(method, endpoint, **kwargs):
        recorded.append((method, endpoint, kwargs))
        return {"success": True, "endpoint": endpoint}

    monkeypatch.setattr(_mod, "api_request", fake_api_request)
    return recorded


class TestTools:
    def test_validate_sends_network(self, tmp_path, calls, simple_network):
        path = write_network(tmp_path / "net.json", simple_network)
        result = json.loads(_mod.sld_validate(path))
        assert result == {"success": True, "endpoint": "/validate"}
        method, endpoint, kwargs = calls[0]
        assert (method, endpoint) == ("POST", "/validate")
        assert [b["tag"] for b in kwargs["json"]["buses"]] == ["A", "B"]

    def test_process(self, tmp_path, calls, simple_network):
        _mod.sld_process(write_network(tmp_path / "net.json", simple_network))
        assert calls[0][1] == "/process"

    def test_layout_payload(self, tmp_path, calls, simple_network):
        path = write_network(tmp_path / "net.json", simple_network)
        saved = tmp_path / "saved.json"
        saved.write_text(json.dumps({"saved_coordinates": [{"tag": "B", "type": "bus", "property_json": "{}"}]}))

        _mod.sld_layout(path, top_spacing=50, saved_coordinates_path=str(saved), emit_saved=True)

        body = calls[0][2]["json"]
        assert body["spacing"] == {"top_spacing": 50, "left_spacing": 100, "x_grid_spacing": 100}
        assert body["saved_coordinates"][0]["tag"] == "B"
        assert body["emit_saved"] is True

    def test_trace_and_candidates(self, tmp_path, calls, simple_network):
        path = write_network(tmp_path / "net.json", simple_network)
        _mod.sld_trace(path, "C1", direction="to")
        _mod.sld_candidates(path, "C1", side="from")
        assert calls[0][2]["json"]["direction"] == "to"
        assert calls[0][2]["json"]["to_source"] is False
        assert calls[1][1] == "/candidates"
        assert calls[1][2]["json"]["side"] == "from"

    def test_summarize_and_categories(self, tmp_path, calls, simple_network):
        _mod.sld_summarize(write_network(tmp_path / "net.json", simple_network), top_n=3)
        _mod.sld_list_categories()
        assert calls[0][2]["json"]["top_n"] == 3
        assert calls[1][:2] == ("GET", "/enums/categories")


class TestApiRequest:
    def test_error_detail_raised(self, monkeypatch):
        real_client = httpx.Client

        def handler(request):
            return httpx.Response(400, json={"detail": "Element 'Z9' not found"})

        monkeypatch.setattr(
            _mod.httpx, "Client",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        with pytest.raises(Exception, match="API error: Element 'Z9' not found"):
            _mod.api_request("POST", "/trace", json={})

    def test_success_returns_json(self, monkeypatch):
        real_client = httpx.Client
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"status": "ok"})

        monkeypatch.setattr(
            _mod.httpx, "Client",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        assert _mod.api_request("GET", "/health") == {"status": "ok"}
        assert seen == [f"{_mod.API_BASE}/health"]

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            _mod.api_request("PUT", "/health")
