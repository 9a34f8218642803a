"""Tessellation configuration."""

from implicitmesh.experiments.config import (
    TessellationConfig,
    FieldConfig,
    GridConfig,
    create_default_config,
    create_sweep_configs,
)

__all__ = [
    "TessellationConfig",
    "FieldConfig",
    "GridConfig",
    "create_default_config",
    "create_sweep_configs",
]
