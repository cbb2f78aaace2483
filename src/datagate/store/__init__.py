"""
Store access for datagate.

This package owns everything that touches a database:

    - EnvironmentRegistry: named SQLAlchemy pools, active selection, timed revert
    - classify_store_error: fixed driver-code -> category lookup

No other module opens connections; the execution engine leases them here.
"""

from datagate.store.classify import (
    CATEGORY_DESCRIPTIONS,
    SQLSTATE_CATEGORIES,
    classify_store_error,
)
from datagate.store.registry import Environment, EnvironmentRegistry, build_engine

__all__ = [
    "CATEGORY_DESCRIPTIONS",
    "Environment",
    "EnvironmentRegistry",
    "SQLSTATE_CATEGORIES",
    "build_engine",
    "classify_store_error",
]
