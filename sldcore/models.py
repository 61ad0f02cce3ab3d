"""
Core data models for single-line diagrams.

These models define the canonical schema for an SLD network:
- Buses: passive terminal nodes placed on a coarse tier/column grid
- Branches (cable, transformer, bus duct): two-ended elements that must
  resolve to one bus on each side
- Passive elements (switch, fuse, bus bar link): two-ended elements that
  bridge buses and branches
- Loads: attached to a single bus

Field Naming Convention:
- Python field names are snake_case (`from_element`, `tier_row`, ...)
- For compatibility with existing project data, the original record names
  (`Tag`, `FromElement`, `fromElement`, `ConnectedBus`, `SLDY`, `Cn`, ...)
  are accepted on input and converted
- Endpoint references use tags only; an empty string means "not set"
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator


class ElementKind(str, Enum):
    """Topological role of an element."""
    BUS = "Bus"
    BRANCH = "Branch"
    NON_BRANCH = "NonBranch"
    LOAD = "Load"


class BusCategory(str, Enum):
    """Load-flow bus categories. Only SWING matters for layout."""
    SWING = "Swing"
    PV = "PV"
    PQ = "PQ"
    NONE = ""


class BranchCategory(str, Enum):
    """Conductive two-ended elements."""
    CABLE = "Cable"
    TRANSFORMER = "Transformer"
    BUS_DUCT = "BusDuct"


class PassiveCategory(str, Enum):
    """Passive two-ended elements (non-branch)."""
    SWITCH = "Switch"
    FUSE = "Fuse"
    BUS_BAR_LINK = "BusBarLink"  # bus tie


# Original record names -> field names
_LEGACY_FIELDS = {
    "Tag": "tag",
    "Category": "category",
    "FromElement": "from_element",
    "fromElement": "from_element",
    "ToElement": "to_element",
    "toElement": "to_element",
    "FromBus": "from_bus",
    "fromBus": "from_bus",
    "ToBus": "to_bus",
    "toBus": "to_bus",
    "VRatio": "v_ratio",
    "V1": "primary_voltage",
    "V2": "secondary_voltage",
    "ConnectedBus": "connected_bus",
    "connectedBus": "connected_bus",
    "SLDX": "tier_column",
    "SLDY": "tier_row",
    "SLDL": "length_units",
    "Cn": "connected_buses",
    "IsSwing": "is_swing",
    "IsAutoGenerated": "is_auto_generated",
    "GeneratedFrom": "generated_from",
    "BoardTag": "board_tag",
    "Network": "network",
    "CordX": "x",
    "CordY": "y",
    "Length": "length",
    "Type": "type",
    "SLD": "sld",
    "PropertyJSON": "property_json",
    # Network containers
    "Buses": "buses",
    "Loads": "loads",
    "Cables": "cables",
    "Transformers": "transformers",
    "BusDucts": "bus_ducts",
    "busDucts": "bus_ducts",
    "Switches": "switches",
    "Fuses": "fuses",
    "BusBarLinks": "bus_ties",
    "busBarLinks": "bus_ties",
    "bus_bar_links": "bus_ties",
}


def convert_legacy_fields(data: Any) -> Any:
    """Rename original record keys to field names (existing keys win)."""
    if isinstance(data, dict):
        data = dict(data)
        for legacy, name in _LEGACY_FIELDS.items():
            if legacy in data and name not in data:
                data[name] = data.pop(legacy)
    return data


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class Bus(BaseModel):
    """A bus (terminal node) in the diagram."""
    tag: str
    category: str = BusCategory.NONE.value
    tier_row: int = 0       # vertical level, source is 0
    tier_column: int = 0    # left-to-right order within a tier
    length_units: int = 1   # drawing length in grid units
    is_swing: bool = False
    is_auto_generated: bool = False
    generated_from: Optional[str] = None
    board_tag: Optional[str] = None
    connected_buses: list[str] = Field(default_factory=list)
    network: int = 0
    # Layout output (pixels)
    x: float = 0
    y: float = 0
    length: float = 0

    @model_validator(mode='before')
    @classmethod
    def convert_legacy(cls, data: Any) -> Any:
        data = convert_legacy_fields(data)
        if isinstance(data, dict) and "is_swing" not in data:
            category = data.get("category") or ""
            if isinstance(category, str) and category.lower() == "swing":
                data["is_swing"] = True
        return data

    @field_validator("connected_buses", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def connect(self, other_tag: str) -> bool:
        """Add `other_tag` to the adjacency list. Returns True if it was new."""
        if other_tag in self.connected_buses:
            return False
        self.connected_buses.append(other_tag)
        return True


def next_tier_column(buses: list[Bus], tier_row: int = 0) -> int:
    """First free column to the right of every bus in `tier_row`."""
    columns = [b.tier_column for b in buses if b.tier_row == tier_row]
    return max(columns) + 1 if columns else 0


class Branch(BaseModel):
    """A conductive element (cable, transformer, bus duct)."""
    tag: str
    category: str = BranchCategory.CABLE.value
    from_element: Optional[str] = None
    to_element: Optional[str] = None
    # Resolved bus endpoints (evaluation output)
    from_bus: Optional[str] = None
    to_bus: Optional[str] = None
    v_ratio: float = 1.0
    primary_voltage: Optional[float] = None
    secondary_voltage: Optional[float] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy(cls, data: Any) -> Any:
        return convert_legacy_fields(data)

    @field_validator("from_element", "to_element", "from_bus", "to_bus", mode="before")
    @classmethod
    def blank_reference(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def is_resolved(self) -> bool:
        return bool(self.from_bus) and bool(self.to_bus)


class PassiveElement(BaseModel):
    """A passive element (switch, fuse, bus bar link)."""
    tag: str
    category: str = PassiveCategory.SWITCH.value
    from_element: Optional[str] = None
    to_element: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy(cls, data: Any) -> Any:
        return convert_legacy_fields(data)

    @field_validator("from_element", "to_element", mode="before")
    @classmethod
    def blank_reference(cls, value: Any) -> Any:
        return _blank_to_none(value)


class Load(BaseModel):
    """A load fed from a single bus."""
    tag: str
    category: str = "Load"  # Motor, Heater, Capacitor, LumpLoad, ...
    connected_bus: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy(cls, data: Any) -> Any:
        return convert_legacy_fields(data)

    @field_validator("connected_bus", mode="before")
    @classmethod
    def blank_reference(cls, value: Any) -> Any:
        return _blank_to_none(value)


class SavedCoordinate(BaseModel):
    """
    A user-saved coordinate record.

    `property_json` holds the persisted payload, one shape per type:
    - bus:   {"position":{"x":N,"y":N},"length":N}
    - swing: {"x":N,"y":N}
    - other: {"x":N,"y":N}
    """
    tag: str
    type: str
    sld: str = "Key"
    property_json: str = ""

    @model_validator(mode='before')
    @classmethod
    def convert_legacy(cls, data: Any) -> Any:
        return convert_legacy_fields(data)


class Network(BaseModel):
    """
    The complete set of records for one SLD.
    This is what callers send in on every invocation.
    """
    name: str = "Key"
    buses: list[Bus] = Field(default_factory=list)
    loads: list[Load] = Field(default_factory=list)
    cables: list[Branch] = Field(default_factory=list)
    transformers: list[Branch] = Field(default_factory=list)
    bus_ducts: list[Branch] = Field(default_factory=list)
    switches: list[PassiveElement] = Field(default_factory=list)
    fuses: list[PassiveElement] = Field(default_factory=list)
    bus_ties: list[PassiveElement] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy(cls, data: Any) -> Any:
        return convert_legacy_fields(data)

    def branches(self) -> list[Branch]:
        """Unified branch list (copies, category stamped from the source list)."""
        result: list[Branch] = []
        groups = (
            (self.cables, BranchCategory.CABLE),
            (self.transformers, BranchCategory.TRANSFORMER),
            (self.bus_ducts, BranchCategory.BUS_DUCT),
        )
        for items, category in groups:
            for item in items:
                v_ratio = item.v_ratio
                if (category == BranchCategory.TRANSFORMER
                        and item.primary_voltage and item.secondary_voltage):
                    v_ratio = item.primary_voltage / item.secondary_voltage
                result.append(item.model_copy(
                    update={"category": category.value, "v_ratio": v_ratio},
                    deep=True,
                ))
        return result

    def passive_elements(self) -> list[PassiveElement]:
        """Unified passive element list, in switch, fuse, bus bar link order."""
        result: list[PassiveElement] = []
        groups = (
            (self.switches, PassiveCategory.SWITCH),
            (self.fuses, PassiveCategory.FUSE),
            (self.bus_ties, PassiveCategory.BUS_BAR_LINK),
        )
        for items, category in groups:
            for item in items:
                result.append(item.model_copy(update={"category": category.value}, deep=True))
        return result

    def get_bus(self, tag: str) -> Optional[Bus]:
        """Get a bus by tag (O(n) - build a dict for repeated lookups)."""
        for bus in self.buses:
            if bus.tag == tag:
                return bus
        return None

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")
