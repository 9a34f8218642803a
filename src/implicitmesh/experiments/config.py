"""
Tessellation configuration system.

Supports YAML-based configuration with dotted-key overrides and sweeps.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from pathlib import Path
from typing import Any, Optional, Union
import yaml

from implicitmesh.core.errors import ConfigurationError
from implicitmesh.core.fields import FIELDS, ScalarField, get_field
from implicitmesh.tessellate.cells import LoopPolicy
from implicitmesh.tessellate.sampler import Lattice


@dataclass
class FieldConfig:
    """Which built-in field to tessellate."""
    name: str = "sphere"
    params: dict[str, Any] = dc_field(default_factory=dict)

    def build(self) -> ScalarField:
        return get_field(self.name, **self.params)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "params": dict(self.params),
        }


@dataclass
class GridConfig:
    """Sampling lattice."""
    half_extent: float = 1.0
    split: int = 16

    def build(self) -> Lattice:
        return Lattice(half_extent=self.half_extent, split=self.split)

    def to_dict(self) -> dict:
        return {
            "half_extent": self.half_extent,
            "split": self.split,
        }


@dataclass
class TessellationConfig:
    """Full tessellation configuration."""
    name: str = "tessellation"
    description: str = ""

    field: FieldConfig = dc_field(default_factory=FieldConfig)
    grid: GridConfig = dc_field(default_factory=GridConfig)

    # Loop handling
    loop_policy: str = LoopPolicy.REJECT.value
    orient: bool = True

    # Output
    evaluate: bool = True
    output_path: Optional[str] = None

    def validate(self) -> TessellationConfig:
        """
        Check settings before any sampling happens.

        Raises:
            ConfigurationError: On an unknown field or policy, or an invalid grid
        """
        if self.field.name not in FIELDS:
            available = ", ".join(FIELDS.keys())
            raise ConfigurationError(f"Unknown field: {self.field.name}. Available: {available}")
        LoopPolicy.parse(self.loop_policy)
        self.grid.build()
        return self

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "field": self.field.to_dict(),
            "grid": self.grid.to_dict(),
            "loop_policy": self.loop_policy,
            "orient": self.orient,
            "evaluate": self.evaluate,
            "output_path": self.output_path,
        }

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load(cls, path: Union[str, Path]) -> TessellationConfig:
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> TessellationConfig:
        """Create config from dictionary."""
        try:
            field_cfg = FieldConfig(**(data.get("field") or {}))
            grid_cfg = GridConfig(**(data.get("grid") or {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid config section: {e}") from e

        return cls(
            name=data.get("name", "tessellation"),
            description=data.get("description", ""),
            field=field_cfg,
            grid=grid_cfg,
            loop_policy=data.get("loop_policy", LoopPolicy.REJECT.value),
            orient=data.get("orient", True),
            evaluate=data.get("evaluate", True),
            output_path=data.get("output_path"),
        )

    def with_overrides(self, **kwargs) -> TessellationConfig:
        """Create new config with overrides; nested keys use dots ("grid.split")."""
        data = self.to_dict()

        for key, value in kwargs.items():
            if "." in key:
                parts = key.split(".")
                d = data
                for part in parts[:-1]:
                    d = d.setdefault(part, {})
                d[parts[-1]] = value
            else:
                data[key] = value

        return TessellationConfig.from_dict(data)


def create_default_config() -> TessellationConfig:
    """Create a default tessellation configuration."""
    return TessellationConfig()


def create_sweep_configs(
    base_config: TessellationConfig,
    sweep_params: dict[str, list]
) -> list[TessellationConfig]:
    """
    Create multiple configs for a parameter sweep.

    Args:
        base_config: Base configuration
        sweep_params: Dict of param_name -> list of values to sweep

    Returns:
        List of configs, one for each combination
    """
    import itertools

    param_names = list(sweep_params.keys())
    param_values = list(sweep_params.values())

    configs = []
    for values in itertools.product(*param_values):
        overrides = dict(zip(param_names, values))
        config = base_config.with_overrides(**overrides)

        suffix = "_".join(f"{k.split('.')[-1]}={v}" for k, v in overrides.items())
        config.name = f"{base_config.name}_{suffix}"

        configs.append(config)

    return configs
