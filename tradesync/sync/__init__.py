"""
Incremental sync engine components.

Provides:
- Group declarations and symbol resolution
- Cursor resolution against stored rows
- Capped, rate-limited trade fetching
- Raw trade normalization
- Derived group statistics
"""

from .groups import (
    ConfigurationError,
    GroupDeclaration,
    TrackedGroup,
    build_group,
    load_groups,
    parse_options,
    resolve_symbols,
)
from .cursor import Cursor, CursorKind, CursorResolver, EPOCH_FLOOR
from .fetcher import PaginatedFetcher, RawTrade
from .transformer import RecordTransformer
from .stats import GroupStats, StatsAggregator

__all__ = [
    # Groups
    "ConfigurationError",
    "GroupDeclaration",
    "TrackedGroup",
    "build_group",
    "load_groups",
    "parse_options",
    "resolve_symbols",
    # Cursor
    "Cursor",
    "CursorKind",
    "CursorResolver",
    "EPOCH_FLOOR",
    # Fetching
    "PaginatedFetcher",
    "RawTrade",
    "RecordTransformer",
    # Stats
    "GroupStats",
    "StatsAggregator",
]
