"""Market snapshots and cross-source matching by player identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import structlog

from odds import OddsParseError, normalize_name, to_decimal

logger = structlog.get_logger()


@dataclass(frozen=True)
class Quote:
    identity: str
    name: str
    odds: str
    price: float


@dataclass(frozen=True)
class MarketSnapshot:
    """One source's quotes for one market, frozen once acquired.

    ``depth`` is None for the win market and N for a "top N finish" market.
    """

    source_id: str
    depth: Optional[int]
    quotes: Mapping[str, Quote] = field(default_factory=dict)
    event_name: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.quotes, MappingProxyType):
            object.__setattr__(self, "quotes", MappingProxyType(dict(self.quotes)))

    def __len__(self) -> int:
        return len(self.quotes)

    def __iter__(self) -> Iterator[Quote]:
        return iter(self.quotes.values())

    def __contains__(self, identity: object) -> bool:
        return identity in self.quotes

    def get(self, label: str) -> Optional[Quote]:
        """Look up a quote by raw label or normalized identity."""
        return self.quotes.get(normalize_name(label))


@dataclass(frozen=True)
class Present:
    snapshot: MarketSnapshot


@dataclass(frozen=True)
class Unavailable:
    source_id: str
    reason: str = "source unavailable"


SnapshotResult = Union[Present, Unavailable]


def _record_fields(record: object) -> Tuple[object, object]:
    if isinstance(record, Mapping):
        name = record.get("name") or record.get("player")
        odds = record.get("odds")
        if odds is None:
            odds = record.get("price")
        return name, odds
    name, odds = record  # type: ignore[misc]
    return name, odds


def build_snapshot(
    source_id: str,
    records: Iterable[object],
    depth: Optional[int] = None,
    event_name: str = "",
) -> MarketSnapshot:
    """Build a snapshot from raw ``(name, odds)`` records.

    Records may be pairs or dicts with ``name`` and ``odds``/``price``. Blank
    names and unparseable prices are dropped; the first quote per player wins.
    """
    quotes: Dict[str, Quote] = {}
    dropped = 0
    for record in records:
        try:
            name, odds = _record_fields(record)
        except (TypeError, ValueError):
            dropped += 1
            continue
        identity = normalize_name(name) if isinstance(name, str) else ""
        if not identity:
            dropped += 1
            continue
        try:
            price = to_decimal(odds)
        except OddsParseError as exc:
            logger.debug("quote_dropped", source=source_id, player=name, reason=str(exc))
            dropped += 1
            continue
        if identity in quotes:
            logger.debug("duplicate_quote_ignored", source=source_id, player=name)
            continue
        quotes[identity] = Quote(
            identity=identity,
            name=" ".join(name.split()),
            odds=str(odds).strip(),
            price=price,
        )
    if dropped:
        logger.info("snapshot_quotes_dropped", source=source_id, depth=depth, dropped=dropped)
    return MarketSnapshot(source_id=source_id, depth=depth, quotes=quotes, event_name=event_name)


def match_snapshots(
    snapshot_a: MarketSnapshot, snapshot_b: MarketSnapshot
) -> Dict[str, Tuple[Quote, Quote]]:
    """Pair quotes for players present in both snapshots.

    Ordered by ``snapshot_a``; players quoted by only one side are left out.
    """
    return {
        identity: (quote, snapshot_b.quotes[identity])
        for identity, quote in snapshot_a.quotes.items()
        if identity in snapshot_b.quotes
    }
