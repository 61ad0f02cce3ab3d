#!/usr/bin/env python3
"""
SLD Tool MCP Server

Provides MCP tools for AI agents to check, resolve and lay out single-line
diagram networks. Every tool reads a network JSON file and forwards it to
the stateless backend API.
"""

import httpx
from mcp.server.fastmcp import FastMCP
from typing import Optional
import json
import os

# Backend API URL
API_BASE = os.environ.get("SLD_TOOL_API", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("sld-tool")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the SLD tool backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"), params=kwargs.get("params"))
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            raise Exception(f"API error: {error}")

        return response.json()


def load_network_file(network_path: str) -> dict:
    """Read a network JSON file (records for one SLD)."""
    with open(os.path.expanduser(network_path), encoding="utf-8") as f:
        return json.load(f)


# ============================================================================
# TOPOLOGY TOOLS
# ============================================================================

@mcp.tool()
def sld_validate(network_path: str) -> str:
    """
    Check that every connection in a network is declared on both ends.

    If element A names B as its FromElement or ToElement, B must name A
    back. References to buses are always accepted.

    Args:
        network_path: Path to the network JSON file

    Returns errors (must be fixed), warnings and a summary.
    """
    result = api_request("POST", "/validate", json=load_network_file(network_path))
    return json.dumps(result, indent=2)


@mcp.tool()
def sld_process(network_path: str) -> str:
    """
    Validate a network, then resolve FromBus/ToBus on every branch.

    Resolution is skipped when validation fails. Buses created along the
    way (for loads, between branches, for unknown references) are returned
    with the other buses and reported as alerts.

    Args:
        network_path: Path to the network JSON file
    """
    result = api_request("POST", "/process", json=load_network_file(network_path))
    return json.dumps(result, indent=2)


# ============================================================================
# LAYOUT TOOLS
# ============================================================================

@mcp.tool()
def sld_layout(
    network_path: str,
    top_spacing: float = 100,
    left_spacing: float = 100,
    x_grid_spacing: float = 100,
    saved_coordinates_path: Optional[str] = None,
    emit_saved: bool = False,
) -> str:
    """
    Compute pixel coordinates for buses, chain elements and loads.

    Args:
        network_path: Path to the network JSON file
        top_spacing: Y of the first tier
        left_spacing: Left page margin
        x_grid_spacing: Pixels per bus length unit
        saved_coordinates_path: Optional JSON file of user-saved coordinates,
            applied over the computed ones
        emit_saved: Also return records in the saved-coordinate format
    """
    payload = {
        "network": load_network_file(network_path),
        "spacing": {
            "top_spacing": top_spacing,
            "left_spacing": left_spacing,
            "x_grid_spacing": x_grid_spacing,
        },
        "emit_saved": emit_saved,
    }
    if saved_coordinates_path:
        saved = load_network_file(saved_coordinates_path)
        if isinstance(saved, dict):
            saved = saved.get("saved_coordinates", [])
        payload["saved_coordinates"] = saved

    result = api_request("POST", "/layout", json=payload)
    return json.dumps(result, indent=2)


# ============================================================================
# ANALYSIS TOOLS
# ============================================================================

@mcp.tool()
def sld_trace(network_path: str, tag: str, direction: str = "from", to_source: bool = False) -> str:
    """
    Trace from one side of an element to the bus it ends at.

    Args:
        network_path: Path to the network JSON file
        tag: Element to start from
        direction: "from" or "to"
        to_source: Trace upstream until the swing buses instead

    Returns the ordered elements passed through and the terminating bus.
    """
    result = api_request("POST", "/trace", json={
        "network": load_network_file(network_path),
        "tag": tag,
        "direction": direction,
        "to_source": to_source,
    })
    return json.dumps(result, indent=2)


@mcp.tool()
def sld_candidates(network_path: str, tag: str, side: str = "from") -> str:
    """
    List elements that can legally be connected to one side of an element.

    Branches never connect straight to branches, buses never to buses, and
    a passive element must not end up between two branches with no bus.

    Args:
        network_path: Path to the network JSON file
        tag: Element being connected
        side: "from" or "to"
    """
    result = api_request("POST", "/candidates", json={
        "network": load_network_file(network_path),
        "tag": tag,
        "side": side,
    })
    return json.dumps(result, indent=2)


@mcp.tool()
def sld_summarize(network_path: str, top_n: int = 5) -> str:
    """
    Get a structural summary of a network.

    Returns element counts by category, swing and generated buses, the
    number of independent networks and the most connected buses.
    """
    result = api_request("POST", "/summary", json={
        "network": load_network_file(network_path),
        "top_n": top_n,
    })
    return json.dumps(result, indent=2)


@mcp.tool()
def sld_list_categories() -> str:
    """List the element kinds and the bus, branch and passive categories."""
    result = api_request("GET", "/enums/categories")
    return json.dumps(result, indent=2)


if __name__ == "__main__":
    mcp.run()
