"""
Configuration loader for the CWD movement analysis.
Loads YAML config and provides typed access to the pairing settings.
"""
import numbers
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from cwd_movement.common.paths import find_repo_root


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to config/config_default.yaml

    Returns:
        Dictionary containing all configuration settings
    """
    if config_path is None:
        config_path = get_repo_root() / "config" / "config_default.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    return config or {}


def get_project_root() -> Path:
    """Get the package directory."""
    return Path(__file__).parent


def get_repo_root() -> Path:
    """Get the enclosing repository root (the one containing `config/` and `stan_models/`)."""
    return find_repo_root(get_project_root())


def _require_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"pairing.{name} must be numeric, got {value!r}")
    return value


@dataclass(frozen=True)
class PairingConfig:
    """Validated settings for the case-control pairing simulation."""
    n_trials: int = 500
    seed: int = 42
    coverage_threshold: float = 180
    ideal_age_years: float = 1.0
    acceptable_age_years: float = 5.0
    max_interval_days: int = 183
    interval_quality_days: float = 120
    age_quality_years: float = 5.0
    n_jobs: int = 1

    def __post_init__(self):
        for name in ('n_trials', 'seed', 'max_interval_days', 'n_jobs'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ValueError(f"pairing.{name} must be an integer, got {value!r}")
        for name in ('coverage_threshold', 'ideal_age_years', 'acceptable_age_years',
                     'interval_quality_days', 'age_quality_years'):
            _require_number(name, getattr(self, name))

        if self.n_trials <= 0:
            raise ValueError(f"pairing.n_trials must be >= 1, got {self.n_trials}")
        if self.seed < 0:
            raise ValueError(f"pairing.seed must be non-negative, got {self.seed}")
        if self.n_jobs <= 0:
            raise ValueError(f"pairing.n_jobs must be >= 1, got {self.n_jobs}")
        if self.max_interval_days <= 0:
            raise ValueError(
                f"pairing.max_interval_days must be positive, got {self.max_interval_days}"
            )
        if self.ideal_age_years <= 0 or self.acceptable_age_years <= 0:
            raise ValueError("pairing age thresholds must be positive")
        if self.ideal_age_years > self.acceptable_age_years:
            raise ValueError(
                "pairing.ideal_age_years must not exceed pairing.acceptable_age_years "
                f"({self.ideal_age_years} > {self.acceptable_age_years})"
            )

    @classmethod
    def from_dict(cls, cfg: Optional[Dict[str, Any]]) -> 'PairingConfig':
        """Build from the `pairing` section of the YAML config."""
        if cfg is None:
            raise ValueError("Missing pairing section in config.")
        unknown = set(cfg) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown pairing settings: {sorted(unknown)}")
        return cls(**cfg)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

