"""
Tracked group declarations.

A group is declared in the config file as a symbol reference plus a
free-form option mapping:

    groups:
      - name: spot
        symbols: "BTC, ETH, BNB"   # or a YAML list
        options: "ticker: USDT"    # or a mapping

The reference resolves to an ordered list of base symbols; each one is
suffixed with the group's ticker to form the traded pair (BTC -> BTCUSDT).
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_TICKER = "USDT"

SymbolReference = Union[str, List[str], None]


class ConfigurationError(Exception):
    """Raised when a group declaration is missing or malformed."""

    def __init__(self, message: str, group: Optional[str] = None):
        super().__init__(message)
        self.group = group


@dataclass
class GroupDeclaration:
    """Raw declaration of a group, as read from configuration."""

    name: str
    symbols: SymbolReference
    options: Union[str, Dict[str, Any], None] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupDeclaration":
        """Build from a config mapping."""
        if not isinstance(data, dict):
            raise ConfigurationError(f"Group declaration must be a mapping, got {data!r}")

        name = str(data.get("name") or "").strip()
        if not name:
            raise ConfigurationError("Group declaration has no name")

        return cls(
            name=name,
            symbols=data.get("symbols"),
            options=data.get("options"),
        )

    def read(self, default_ticker: str = DEFAULT_TICKER) -> Tuple[SymbolReference, Dict[str, str]]:
        """Return (symbol reference, parsed options)."""
        return self.symbols, parse_options(self.options, default_ticker)


@dataclass
class TrackedGroup:
    """A named synchronization target sharing one status/stats region."""

    name: str
    symbols: List[str]
    ticker: str = DEFAULT_TICKER
    status: str = ""
    last_run: Optional[datetime] = None
    base_symbols: List[str] = field(default_factory=list)


def parse_options(
    options: Union[str, Dict[str, Any], None],
    default_ticker: str = DEFAULT_TICKER,
) -> Dict[str, str]:
    """
    Parse the free-form option mapping of a declaration.

    Accepts a mapping or a "key: value, key: value" string. Keys are
    lower-cased; `ticker` falls back to default_ticker and is upper-cased.
    """
    parsed: Dict[str, str] = {}

    if isinstance(options, dict):
        parsed = {str(k).strip().lower(): str(v).strip() for k, v in options.items()}
    elif isinstance(options, str):
        for chunk in re.split(r"[,;\n]", options):
            if not chunk.strip():
                continue
            if ":" not in chunk:
                raise ConfigurationError(f"Malformed option {chunk.strip()!r}, expected 'key: value'")
            key, value = chunk.split(":", 1)
            parsed[key.strip().lower()] = value.strip()
    elif options is not None:
        raise ConfigurationError(f"Unsupported options value {options!r}")

    parsed["ticker"] = (parsed.get("ticker") or default_ticker).upper()
    return parsed


def resolve_symbols(reference: SymbolReference) -> List[str]:
    """
    Resolve a symbol reference to an ordered list of base symbols.

    Blank entries are dropped, duplicates keep their first position.
    """
    if reference is None:
        return []

    if isinstance(reference, str):
        items = re.split(r"[\s,;]+", reference)
    elif isinstance(reference, (list, tuple)):
        items = [str(item) for item in reference if item is not None]
    else:
        raise ConfigurationError(f"Unsupported symbol reference {reference!r}")

    symbols: List[str] = []
    for item in items:
        symbol = item.strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols


def build_group(
    declaration: GroupDeclaration,
    default_ticker: str = DEFAULT_TICKER,
) -> TrackedGroup:
    """
    Validate a declaration and build its TrackedGroup.

    Raises:
        ConfigurationError: If no symbols are declared
    """
    reference, options = declaration.read(default_ticker)
    base_symbols = resolve_symbols(reference)

    if not base_symbols:
        raise ConfigurationError(
            f"Group '{declaration.name}' declares no symbols",
            group=declaration.name,
        )

    ticker = options["ticker"]
    return TrackedGroup(
        name=declaration.name,
        symbols=[f"{base}{ticker}" for base in base_symbols],
        ticker=ticker,
        base_symbols=base_symbols,
    )


def load_groups(
    raw_groups: List[Dict[str, Any]],
    default_ticker: str = DEFAULT_TICKER,
) -> List[TrackedGroup]:
    """
    Build all groups from the `groups:` config section.

    Raises:
        ConfigurationError: On the first invalid or duplicate declaration
    """
    groups: List[TrackedGroup] = []
    seen = set()

    for data in raw_groups:
        group = build_group(GroupDeclaration.from_dict(data), default_ticker)
        if group.name in seen:
            raise ConfigurationError(f"Group '{group.name}' declared twice", group=group.name)
        seen.add(group.name)
        groups.append(group)

    logger.debug(f"Loaded {len(groups)} group declarations")
    return groups
