"""
Schema management package for pgcascade.

This package provides:
- View dependency ordering
- Savepoint-isolated index and trigger reapplication
- Cascade-safe view and materialized view updates
- Dependency-ordered materialized view refreshes
"""

from .dependencies import DependencyGraphResolver
from .indexes import IndexReapplication
from .triggers import TriggerReapplication
from .views import CascadingViewUpdater, CascadeSnapshot
from .refresh import RefreshDependencyCascader

__all__ = [
    "DependencyGraphResolver",
    "IndexReapplication",
    "TriggerReapplication",
    "CascadingViewUpdater",
    "CascadeSnapshot",
    "RefreshDependencyCascader",
]
