"""
Layout configuration.

`LayoutPolicy` holds the fixed drawing policy (slot heights, gaps, offsets).
`SpacingConfig` holds the per-call page spacing supplied by the caller.
Both are plain models passed into the layout engine; nothing here is global.
"""

import os
from pydantic import BaseModel, Field


class LayoutPolicy(BaseModel):
    """Fixed layout policy values, in pixels."""
    branch_slot_height: float = 100       # per branch in a chain
    non_branch_slot_height: float = 80    # per passive element in a chain
    element_draw_height: float = 60       # visual height of any element
    element_gap: float = 20               # gap between same-tier elements
    min_tier_gap: float = 120             # minimum vertical gap between tiers
    same_tier_y_offset: float = 60        # same-tier chains sit above the tier line
    parallel_x_offset: float = 80         # between parallel cross-tier chains
    same_tier_parallel_offset: float = 90  # between parallel same-tier chains
    chain_padding_y: float = 20           # above/below a chain inside a tier gap
    load_y_offset: float = 80             # loads sit below their bus
    load_x_spacing: float = 60            # between loads on the same bus


DEFAULT_POLICY = LayoutPolicy()


class SpacingConfig(BaseModel):
    """Page spacing for one layout run."""
    top_spacing: float = Field(default=100, ge=0)
    left_spacing: float = Field(default=100, ge=0)
    x_grid_spacing: float = Field(default=100, gt=0)

    @classmethod
    def from_env(cls) -> "SpacingConfig":
        """Build from SLD_TOP_SPACING / SLD_LEFT_SPACING / SLD_X_GRID_SPACING."""
        defaults = cls()
        return cls(
            top_spacing=float(os.environ.get("SLD_TOP_SPACING", defaults.top_spacing)),
            left_spacing=float(os.environ.get("SLD_LEFT_SPACING", defaults.left_spacing)),
            x_grid_spacing=float(os.environ.get("SLD_X_GRID_SPACING", defaults.x_grid_spacing)),
        )
