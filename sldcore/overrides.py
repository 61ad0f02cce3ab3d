"""
Saved coordinate overrides.

Users can drag elements on the canvas; the canvas persists one record per
element with a small JSON payload. The payload shapes are a stored format
and must not change:

    bus:    {"position":{"x":N,"y":N},"length":N}
    swing:  {"x":N,"y":N}
    others: {"x":N,"y":N}
"""

import json
import logging
from typing import TYPE_CHECKING, Iterable, Optional

from .models import Bus, SavedCoordinate

if TYPE_CHECKING:
    from .layout import LayoutResult

logger = logging.getLogger(__name__)


BUS_TYPES = {"bus", "swing"}
ELEMENT_TYPES = {"cable", "transformer", "busduct", "switch", "fuse", "busbarlink"}
# Drawn by the canvas itself
SKIPPED_TYPES = {"link", "swbd"}


def apply_saved_coordinates(
    records: Iterable[SavedCoordinate],
    buses: list[Bus],
    element_coordinates: dict[str, tuple[float, float]],
    sld_name: Optional[str] = None,
) -> list[str]:
    """
    Overwrite computed coordinates with saved ones.

    Args:
        records: Saved coordinate records
        buses: Buses to update (x, y, length) in place
        element_coordinates: Chain element coordinates to update in place
        sld_name: If given, only records for this SLD (case-insensitive)

    Returns:
        List of warning messages (unknown types, unparsable payloads)
    """
    warnings: list[str] = []
    bus_index = {b.tag: b for b in buses}

    relevant = [
        r for r in records or []
        if sld_name is None or (r.sld or "").lower() == sld_name.lower()
    ]
    logger.info("Applying %d saved coordinates", len(relevant))

    for record in relevant:
        if not record.property_json or not record.tag:
            continue

        kind = (record.type or "").lower()
        if kind in SKIPPED_TYPES:
            continue
        if kind not in BUS_TYPES and kind not in ELEMENT_TYPES:
            message = f"Unknown saved coordinate type '{record.type}' for tag '{record.tag}'."
            logger.warning(message)
            warnings.append(message)
            continue

        try:
            payload = json.loads(record.property_json)
            if kind in BUS_TYPES:
                _apply_bus(bus_index.get(record.tag), payload)
            elif "x" in payload and "y" in payload:
                element_coordinates[record.tag] = (float(payload["x"]), float(payload["y"]))
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            message = f"Failed to parse saved coordinates for '{record.tag}' ({record.type}): {e}"
            logger.warning(message)
            warnings.append(message)

    return warnings


def _apply_bus(bus: Optional[Bus], payload: dict):
    if bus is None:
        return
    if "position" in payload:
        position = payload["position"]
        bus.x, bus.y = float(position["x"]), float(position["y"])
        if "length" in payload:
            bus.length = float(payload["length"])
    elif "x" in payload:
        bus.x, bus.y = float(payload["x"]), float(payload["y"])


def _number(value: float):
    """Whole numbers are stored as integers."""
    value = float(value)
    return int(value) if value.is_integer() else value


def _dumps(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"))


def bus_payload(bus: Bus) -> tuple[str, str]:
    """(type, property_json) for a bus."""
    if bus.is_swing:
        return "swing", _dumps({"x": _number(bus.x), "y": _number(bus.y)})
    return "bus", _dumps({
        "position": {"x": _number(bus.x), "y": _number(bus.y)},
        "length": _number(bus.length),
    })


def saved_coordinates_from_layout(result: "LayoutResult", sld: str = "Key") -> list[SavedCoordinate]:
    """Records for every bus and chain element of a layout, in the stored format."""
    records: list[SavedCoordinate] = []
    for bus in result.buses:
        kind, property_json = bus_payload(bus)
        records.append(SavedCoordinate(tag=bus.tag, type=kind, sld=sld, property_json=property_json))

    types: dict[str, str] = {}
    for chain in result.chains:
        types.update(zip(chain.element_tags, chain.element_types))

    for tag, (x, y) in result.element_coordinates.items():
        records.append(SavedCoordinate(
            tag=tag,
            type=types.get(tag, "").lower(),
            sld=sld,
            property_json=_dumps({"x": _number(x), "y": _number(y)}),
        ))
    return records
