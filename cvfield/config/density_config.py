"""
Central configuration for density-map runs.

Singleton config loader that merges an optional JSON overlay on top of
DEFAULTS.  The overlay path comes from the CVFIELD_CONFIG environment
variable, which may also be set in a ``.env`` file in the working
directory.  Use `get_density_config()` instead of hardcoding grid sizes,
radii or budgets.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from cvfield.density.accumulator import DensityAccumulator
from cvfield.errors import InvalidConfiguration
from cvfield.geometry.cvf import TransformMode
from cvfield.spatial.reference_points import ReferencePointSet
from cvfield.spatial.spatial_index import SpatialIndex

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CVFIELD_CONFIG"

# ── Defaults ──────────────────────────────────────────────────────────────

DEFAULTS: dict[str, Any] = {
    "geometry": {
        "radius": 100.0,
        "theta": 30,
        "phi": 60,
    },
    "reference": {
        "radius": 98.0,
        "detail": 5,
    },
    "spatial_index": {
        "cell_size": 25.0,
        "offset": 6,
        "grid_size": 12,
    },
    "density": {
        "mode": "basic",
        "radius": 98.0,
        "hit_radius": 15.0,
        "n": 12,
        "m": 12,
        "phi": 60,
        "budget": 500,
    },
    "logging": {
        "level": "INFO",
        "file": None,  # stderr only
        "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "max_bytes": 5 * 1024 * 1024,
        "backup_count": 3,
    },
}


def _resolve_config_path() -> Optional[Path]:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    value = os.environ.get(CONFIG_ENV_VAR)
    return Path(value) if value else None


class DensityConfig:
    """Singleton configuration for density-map runs.

    Thread-safe.  Changes live in memory only.
    """

    _instance: Optional[DensityConfig] = None
    _lock = threading.Lock()

    def __new__(cls) -> DensityConfig:
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._data: dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._initialized = True
        self._load(_resolve_config_path())

    def _load(self, path: Optional[Path]):
        """Merge a JSON overlay from disk into the defaults."""
        if path is None:
            return
        if not path.exists():
            logger.warning("Density config %s does not exist; using defaults", path)
            return
        try:
            overlay = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(overlay, dict):
            raise InvalidConfiguration(f"{path} must contain a JSON object")
        self._merge(self._data, overlay)
        logger.info("Loaded density config from %s", path)

    def _merge(self, base: dict, overlay: dict):
        """Deep-merge overlay into base."""
        for k, v in overlay.items():
            if k in base and isinstance(base[k], dict) and isinstance(v, dict):
                self._merge(base[k], v)
            else:
                base[k] = v

    def load_file(self, path: str | Path):
        """Merge an explicit JSON overlay file."""
        with self._lock:
            self._load(Path(path))

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Get a config value. If key is None, returns the whole section."""
        with self._lock:
            sec = self._data.get(section, {})
            if key is None:
                return copy.deepcopy(sec)
            return copy.deepcopy(sec.get(key))

    def set(self, section: str, key: str, value: Any):
        with self._lock:
            self._data.setdefault(section, {})[key] = value

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def update(self, data: dict[str, Any]):
        """Deep-merge updates."""
        with self._lock:
            self._merge(self._data, data)

    def reset(self):
        """Reset to defaults."""
        with self._lock:
            self._data = copy.deepcopy(DEFAULTS)

    def diff(self) -> dict[str, Any]:
        """Return values that differ from defaults."""
        return self._diff_dict(DEFAULTS, self.get_all())

    def _diff_dict(self, defaults: dict, current: dict) -> dict:
        result = {}
        for k, v in current.items():
            if k not in defaults:
                result[k] = v
            elif isinstance(v, dict) and isinstance(defaults[k], dict):
                d = self._diff_dict(defaults[k], v)
                if d:
                    result[k] = d
            elif v != defaults[k]:
                result[k] = v
        return result


def get_density_config() -> DensityConfig:
    """Get the singleton DensityConfig instance."""
    return DensityConfig()


# ── Builders ──────────────────────────────────────────────────────────────


def build_reference_points(cfg: Optional[DensityConfig] = None) -> ReferencePointSet:
    cfg = cfg or get_density_config()
    ref = cfg.get("reference")
    return ReferencePointSet.icosphere(float(ref["radius"]), int(ref["detail"]))


def build_spatial_index(
    cfg: Optional[DensityConfig] = None,
    reference_points: Optional[ReferencePointSet] = None,
) -> SpatialIndex:
    cfg = cfg or get_density_config()
    grid = cfg.get("spatial_index")
    points = reference_points or build_reference_points(cfg)
    return SpatialIndex.build(
        points,
        cell_size=float(grid["cell_size"]),
        offset=int(grid["offset"]),
        grid_size=int(grid["grid_size"]),
    )


def build_accumulator(cfg: Optional[DensityConfig] = None) -> DensityAccumulator:
    """Reference set, spatial index and accumulator wired from config."""
    cfg = cfg or get_density_config()
    points = build_reference_points(cfg)
    index = build_spatial_index(cfg, points)
    dens = cfg.get("density")
    return DensityAccumulator(
        points,
        index,
        mode=TransformMode.parse(dens["mode"]),
        radius=float(dens["radius"]),
        hit_radius=float(dens["hit_radius"]),
    )
