"""
Guards for datagate.

Guards are pure, side-effect-free classifiers that accept or reject a
request before anything touches a store:

    - QueryGuard: read-only keyword prefix + LIMIT token, row cap ceiling
    - CodeGuard: ordered denylist for analysis code

Every engine call passes through both (where applicable) before a
connection is leased.
"""

from datagate.guards.code import DEFAULT_PATTERNS, BlockedPattern, CodeGuard
from datagate.guards.query import BOUND_TOKEN, READ_ONLY_PREFIXES, QueryGuard

__all__ = [
    "BOUND_TOKEN",
    "BlockedPattern",
    "CodeGuard",
    "DEFAULT_PATTERNS",
    "QueryGuard",
    "READ_ONLY_PREFIXES",
]
