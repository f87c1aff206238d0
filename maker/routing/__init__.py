"""Built-in router implementations."""

from maker.routing.diversity import DiversityRouter
from maker.routing.pool import PoolRouter
from maker.routing.role_mapped import RoleMappedRouter

__all__ = [
    "PoolRouter",
    "DiversityRouter",
    "RoleMappedRouter",
]
