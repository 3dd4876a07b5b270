"""
Engine settings.

Defaults live in module constants; `EngineSettings.from_env()` applies
`IDM_CORE_*` environment overrides.
"""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# Default engine parameters
DEFAULT_LAYOUT_PADDING = 30      # Minimum gap between shapes
DEFAULT_MAX_LAYOUT_PASSES = 50
DEFAULT_HORIZONTAL_SLACK = 5
DEFAULT_VERTICAL_SLACK = 10
DEFAULT_ROOT_NAME_PREFIX = "er_"
DEFAULT_FALLBACK_ROOT_NAME = "er_Root"


class PlacementPolicy(str, Enum):
    """Where an ER created for a new data object is attached."""
    APPEND_TO_ROOT = "append_to_root"  # Last child of the root (top-level if no root yet)
    NEW_TOP_LEVEL = "new_top_level"    # New top-level ER, followed by root consolidation


_TRUE_VALUES = {"1", "true", "yes", "on"}


class EngineSettings(BaseModel):
    """Tunable parameters shared by the resolvers and the layout engine."""
    layout_padding: float = Field(default=DEFAULT_LAYOUT_PADDING, ge=0)
    max_layout_passes: int = Field(default=DEFAULT_MAX_LAYOUT_PASSES, ge=1)
    horizontal_slack: float = DEFAULT_HORIZONTAL_SLACK
    vertical_slack: float = DEFAULT_VERTICAL_SLACK
    root_name_prefix: str = DEFAULT_ROOT_NAME_PREFIX
    fallback_root_name: str = DEFAULT_FALLBACK_ROOT_NAME
    placement_policy: PlacementPolicy = PlacementPolicy.APPEND_TO_ROOT
    # Debug mode raises on hierarchy invariant violations instead of repairing
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "EngineSettings":
        """Build settings from IDM_CORE_* environment variables."""
        env = os.environ if environ is None else environ
        values = {}

        if "IDM_CORE_DEBUG" in env:
            values["debug"] = env["IDM_CORE_DEBUG"].strip().lower() in _TRUE_VALUES
        if "IDM_CORE_LAYOUT_PADDING" in env:
            values["layout_padding"] = float(env["IDM_CORE_LAYOUT_PADDING"])
        if "IDM_CORE_MAX_LAYOUT_PASSES" in env:
            values["max_layout_passes"] = int(env["IDM_CORE_MAX_LAYOUT_PASSES"])
        if "IDM_CORE_PLACEMENT_POLICY" in env:
            values["placement_policy"] = env["IDM_CORE_PLACEMENT_POLICY"]

        return cls(**values)


default_settings = EngineSettings()
