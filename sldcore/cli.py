#!/usr/bin/env python3
"""SLD tool CLI - validate, process, lay out and inspect a network file."""

import argparse
import json
import logging
import sys

from pydantic import ValidationError as ModelValidationError

from .analysis import ConnectivityAnalyzer, summarize_network
from .config import SpacingConfig
from .layout import layout_network
from .models import Network, SavedCoordinate
from .overrides import saved_coordinates_from_layout
from .processing import process_connections
from .validation import validate_network, validation_summary

logger = logging.getLogger(__name__)


class CliError(Exception):
    """Input problem reported to the user as a JSON error."""


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _read_json(path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise CliError(f"File not found: {path}")
    except json.JSONDecodeError as e:
        raise CliError(f"Invalid JSON in {path}: {e}")


def _load_network(path):
    try:
        return Network.model_validate(_read_json(path))
    except ModelValidationError as e:
        raise CliError(f"Invalid network in {path}: {e.error_count()} problem(s): {e.errors()[0]['msg']}")


def _load_saved(path):
    if not path:
        return None
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("saved_coordinates", [])
    try:
        return [SavedCoordinate.model_validate(item) for item in data]
    except ModelValidationError as e:
        raise CliError(f"Invalid saved coordinates in {path}: {e.errors()[0]['msg']}")


def _spacing(args):
    spacing = SpacingConfig.from_env()
    updates = {}
    if args.top_spacing is not None:
        updates["top_spacing"] = args.top_spacing
    if args.left_spacing is not None:
        updates["left_spacing"] = args.left_spacing
    if args.x_grid_spacing is not None:
        updates["x_grid_spacing"] = args.x_grid_spacing
    if updates:
        spacing = SpacingConfig(**{**spacing.model_dump(), **updates})
    return spacing


# ── Topology ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    network = _load_network(args.network)
    result = validate_network(network)
    _json_out({
        "status": "ok" if result.ok else "invalid",
        "summary": validation_summary(result),
        **result.to_dict(),
    }, code=0 if result.ok else 1)


def cmd_process(args):
    network = _load_network(args.network)
    result = process_connections(network)
    _json_out(result.to_dict(), code=0 if result.success else 1)


# ── Layout ───────────────────────────────────────────────────────────────────

def cmd_layout(args):
    network = _load_network(args.network)
    saved = _load_saved(args.saved)

    processed = process_connections(network)
    if not processed.success:
        _json_out({"status": "error", "error": processed.message, "processing": processed.to_dict()}, code=1)

    result = layout_network(processed.network, spacing=_spacing(args), saved_coordinates=saved)
    output = result.to_dict()
    if args.emit_saved:
        output["saved_coordinates"] = [
            r.model_dump() for r in saved_coordinates_from_layout(result, sld=processed.network.name)
        ]
    _json_out(output)


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_trace(args):
    analyzer = ConnectivityAnalyzer.from_network(_load_network(args.network))
    if args.to_source:
        traces = analyzer.trace_to_source(args.tag)
        _json_out({"status": "ok", "traces": [t.to_dict() for t in traces]})
    result = analyzer.trace_chain(args.tag, args.direction)
    _json_out(result.to_dict(), code=0 if result.success else 1)


def cmd_candidates(args):
    analyzer = ConnectivityAnalyzer.from_network(_load_network(args.network))
    candidates = analyzer.valid_candidates(args.tag, args.side)
    _json_out({
        "status": "ok",
        "element": args.tag,
        "side": args.side.lower(),
        "count": len(candidates),
        "candidates": [c.to_dict() for c in candidates],
    })


def cmd_summarize(args):
    network = _load_network(args.network)
    processed = process_connections(network)
    target = processed.network if processed.success else network
    _json_out({
        "status": "ok",
        "processed": processed.success,
        "summary": summarize_network(target, top_n=args.top).to_dict(),
    })


def main(argv=None):
    parser = argparse.ArgumentParser(prog="sld-tool", description="Single-line diagram topology and layout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    # Topology
    p = sub.add_parser("validate", help="Check bidirectional connections")
    p.add_argument("network")

    p = sub.add_parser("process", help="Validate, then resolve FromBus/ToBus")
    p.add_argument("network")

    # Layout
    p = sub.add_parser("layout", help="Compute pixel coordinates")
    p.add_argument("network")
    p.add_argument("--saved", default=None, help="JSON file with saved coordinates")
    p.add_argument("--top-spacing", type=float, default=None)
    p.add_argument("--left-spacing", type=float, default=None)
    p.add_argument("--x-grid-spacing", type=float, default=None)
    p.add_argument("--emit-saved", action="store_true", help="Include saved-coordinate records")

    # Analysis
    p = sub.add_parser("trace", help="Trace an element side to its bus")
    p.add_argument("network")
    p.add_argument("--tag", required=True)
    p.add_argument("--direction", default="from")
    p.add_argument("--to-source", action="store_true", help="Trace upstream to swing buses")

    p = sub.add_parser("candidates", help="List elements that can connect to a side")
    p.add_argument("network")
    p.add_argument("--tag", required=True)
    p.add_argument("--side", default="from")

    p = sub.add_parser("summarize", help="Structural summary")
    p.add_argument("network")
    p.add_argument("--top", type=int, default=5)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmd_map = {
        "validate": cmd_validate,
        "process": cmd_process,
        "layout": cmd_layout,
        "trace": cmd_trace,
        "candidates": cmd_candidates,
        "summarize": cmd_summarize,
    }
    try:
        cmd_map[args.command](args)
    except CliError as e:
        _json_out({"status": "error", "error": str(e)}, code=2)
    except ValueError as e:
        _json_out({"status": "error", "error": str(e)}, code=2)


if __name__ == "__main__":
    main()
