from cvfield.config.density_config import (
    DEFAULTS,
    DensityConfig,
    build_accumulator,
    build_reference_points,
    build_spatial_index,
    get_density_config,
)

__all__ = [
    "DEFAULTS",
    "DensityConfig",
    "build_accumulator",
    "build_reference_points",
    "build_spatial_index",
    "get_density_config",
]
