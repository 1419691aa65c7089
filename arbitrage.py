"""Each-way and win edge detection against exchange lay prices."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from config import DEFAULT_PLACE_DEPTH, EDGE_BANDS
from markets import MarketSnapshot, Present, Quote, Unavailable, match_snapshots
from odds import DEFAULT_EACH_WAY_TERMS, EachWayTerms, OddsParseError, derive_place_price
from projection import PlaceProjector, depth_in_range

logger = structlog.get_logger()

MarketInput = Union[MarketSnapshot, Present, Unavailable, None]

PLACE_REFERENCE_PROJECTED = "projected"
PLACE_REFERENCE_BLENDED = "blended"


class ReferenceMarketError(ValueError):
    """Raised when a required exchange market is missing."""


def _require_market(market: MarketInput, label: str) -> MarketSnapshot:
    if isinstance(market, Present):
        return market.snapshot
    if isinstance(market, MarketSnapshot):
        return market
    if isinstance(market, Unavailable):
        raise ReferenceMarketError(f"Exchange {label} market unavailable: {market.reason}")
    raise ReferenceMarketError(f"Exchange {label} market is required")


def calculate_edge_percent(offer_price: float, reference_price: float) -> float:
    """Return the edge of a bookmaker price over the exchange lay price as a percentage."""
    if reference_price <= 0:
        return 0.0
    return (offer_price / reference_price - 1.0) * 100


def blended_lay_price(win_lay: float, place_lay: float, terms: EachWayTerms) -> float:
    """Average the win lay price with the win-equivalent of the place lay price."""
    implied_win_from_place = (place_lay - 1.0) / terms.fraction_value + 1.0
    return (win_lay + implied_win_from_place) / 2.0


@dataclass(frozen=True)
class BookmakerOffer:
    """A bookmaker's win market plus the each-way settings that apply to it.

    ``provider`` is the resolved provider key, or None when the page could not
    be mapped to a known bookmaker. ``places`` is an explicit place-count
    override from configuration.
    """

    provider: Optional[str]
    snapshot: MarketSnapshot
    terms: Optional[EachWayTerms] = None
    places: Optional[int] = None

    @property
    def source_id(self) -> str:
        return self.snapshot.source_id


@dataclass(frozen=True)
class LayablePrice:
    identity: str
    name: str
    win_lay_price: float
    place_lay_price: float
    combined_lay_price: float


@dataclass(frozen=True)
class WinRecord:
    identity: str
    name: str
    source_id: str
    offer_odds: str
    offer_win_price: float
    reference_win_price: float
    win_edge: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ArbitrageRecord:
    identity: str
    name: str
    source_id: str
    offer_odds: str
    offer_win_price: float
    offer_place_odds: str
    offer_place_price: float
    reference_win_price: float
    reference_place_price: float
    win_edge: float
    place_edge: float
    combined_edge: float
    place_depth: int
    place_reference: str

    def to_dict(self) -> dict:
        return asdict(self)


Record = Union[ArbitrageRecord, WinRecord]


def rank(records: Iterable[Record], edge_attr: str = "combined_edge") -> List[Record]:
    """Sort records by ``edge_attr`` descending, keeping input order on ties."""
    return sorted(records, key=lambda record: getattr(record, edge_attr), reverse=True)


class EachWayCalculator:
    """Compares bookmaker each-way offers with exchange Winner / Top 5 / Top 10 lay prices."""

    def __init__(
        self,
        win_market: MarketInput,
        top5_market: MarketInput,
        top10_market: MarketInput,
        default_terms: EachWayTerms = DEFAULT_EACH_WAY_TERMS,
        default_depth: int = DEFAULT_PLACE_DEPTH,
    ) -> None:
        self.win_market = _require_market(win_market, "Winner")
        self.top5_market = _require_market(top5_market, "Top 5")
        self.top10_market = _require_market(top10_market, "Top 10")
        self.default_terms = default_terms
        self.default_depth = default_depth
        self.projector = PlaceProjector(self.top5_market, self.top10_market)
        self.logger = logger.bind(component="each_way_calculator")

    def layable_prices(self) -> List[LayablePrice]:
        """Blended each-way lay prices for players quoted in both Winner and Top 10."""
        prices = []
        for identity, (win_quote, place_quote) in match_snapshots(
            self.win_market, self.top10_market
        ).items():
            prices.append(
                LayablePrice(
                    identity=identity,
                    name=win_quote.name,
                    win_lay_price=win_quote.price,
                    place_lay_price=place_quote.price,
                    combined_lay_price=blended_lay_price(
                        win_quote.price, place_quote.price, self.default_terms
                    ),
                )
            )
        prices.sort(key=lambda price: price.combined_lay_price)
        return prices

    def resolve_depth(self, offer: BookmakerOffer) -> int:
        """Configured places, else the offer's own each-way places, else the default."""
        if offer.places is not None:
            return offer.places
        if offer.terms is not None:
            return offer.terms.places
        return self.default_depth

    def _reference_place_price(
        self, layable: LayablePrice, depth: int
    ) -> Tuple[float, str]:
        if depth_in_range(depth):
            projected = self.projector.project(layable.identity, depth)
            if projected is not None:
                return projected, PLACE_REFERENCE_PROJECTED
        return layable.combined_lay_price, PLACE_REFERENCE_BLENDED

    def find_opportunities(self, offers: Sequence[BookmakerOffer]) -> List[ArbitrageRecord]:
        layable_by_identity: Dict[str, LayablePrice] = {
            price.identity: price for price in self.layable_prices()
        }
        records: List[ArbitrageRecord] = []
        for offer in offers:
            if offer.provider is None:
                self.logger.warning("offer_skipped_unknown_source", source=offer.source_id)
                continue
            terms = offer.terms or self.default_terms
            depth = self.resolve_depth(offer)
            for quote in offer.snapshot:
                layable = layable_by_identity.get(quote.identity)
                if layable is None:
                    continue
                record = self._build_record(offer.provider, quote, terms, depth, layable)
                if record is not None:
                    records.append(record)
        ranked = rank(records, "combined_edge")
        self.logger.info(
            "each_way_scan_complete",
            offers=len(offers),
            records=len(ranked),
            profitable=sum(1 for record in ranked if record.combined_edge > 0),
        )
        return ranked

    def _build_record(
        self,
        provider: str,
        quote: Quote,
        terms: EachWayTerms,
        depth: int,
        layable: LayablePrice,
    ) -> Optional[ArbitrageRecord]:
        try:
            place = derive_place_price(quote.odds, terms)
        except OddsParseError as exc:
            self.logger.debug("offer_quote_skipped", source=provider, player=quote.name, reason=str(exc))
            return None
        reference_place, place_reference = self._reference_place_price(layable, depth)
        win_edge = calculate_edge_percent(quote.price, layable.win_lay_price)
        place_edge = calculate_edge_percent(place.price, reference_place)
        return ArbitrageRecord(
            identity=quote.identity,
            name=quote.name,
            source_id=provider,
            offer_odds=quote.odds,
            offer_win_price=quote.price,
            offer_place_odds=place.fractional,
            offer_place_price=place.price,
            reference_win_price=layable.win_lay_price,
            reference_place_price=reference_place,
            win_edge=win_edge,
            place_edge=place_edge,
            combined_edge=(win_edge + place_edge) / 2,
            place_depth=depth,
            place_reference=place_reference,
        )


def find_win_opportunities(
    offers: Sequence[BookmakerOffer], win_market: MarketInput
) -> List[WinRecord]:
    """Compare bookmaker win prices with the exchange Winner lay price."""
    reference = _require_market(win_market, "Winner")
    records: List[WinRecord] = []
    for offer in offers:
        if offer.provider is None:
            logger.warning("offer_skipped_unknown_source", source=offer.source_id)
            continue
        for identity, (quote, lay_quote) in match_snapshots(offer.snapshot, reference).items():
            records.append(
                WinRecord(
                    identity=identity,
                    name=quote.name,
                    source_id=offer.provider,
                    offer_odds=quote.odds,
                    offer_win_price=quote.price,
                    reference_win_price=lay_quote.price,
                    win_edge=calculate_edge_percent(quote.price, lay_quote.price),
                )
            )
    return rank(records, "win_edge")


@dataclass(frozen=True)
class EntityGroup:
    identity: str
    name: str
    records: Tuple[Record, ...]
    edge_attr: str = "combined_edge"

    @property
    def best_edge(self) -> float:
        return getattr(self.records[0], self.edge_attr)

    def profitable(self) -> List[Record]:
        return [record for record in self.records if getattr(record, self.edge_attr) > 0]

    def to_dict(self) -> dict:
        return {
            "player": self.name,
            "identity": self.identity,
            "best_edge": self.best_edge,
            "records": [record.to_dict() for record in self.records],
        }


def group_by_entity(records: Iterable[Record], edge_attr: str = "combined_edge") -> List[EntityGroup]:
    """Group records per player, best records first, best players first."""
    buckets: Dict[str, List[Record]] = {}
    for record in records:
        buckets.setdefault(record.identity, []).append(record)
    groups = []
    for identity, items in buckets.items():
        ordered = rank(items, edge_attr)
        groups.append(EntityGroup(identity, ordered[0].name, tuple(ordered), edge_attr))
    groups.sort(key=lambda group: group.best_edge, reverse=True)
    return groups


def _edge_band(edge: float) -> Optional[str]:
    for low, high, label in EDGE_BANDS:
        if low <= edge < high:
            return label
    return None


def summarize(records: Sequence[Record], edge_attr: str = "combined_edge") -> dict:
    groups = group_by_entity(records, edge_attr)
    profitable = [record for record in records if getattr(record, edge_attr) > 0]
    multi_source = []
    for group in groups:
        winners = group.profitable()
        if len({record.source_id for record in winners}) > 1:
            multi_source.append(
                {
                    "player": group.name,
                    "sources": [
                        {"source": record.source_id, "edge": getattr(record, edge_attr)}
                        for record in winners
                    ],
                }
            )
    by_edge_band: Dict[str, int] = {label: 0 for _, _, label in EDGE_BANDS}
    for record in profitable:
        band = _edge_band(getattr(record, edge_attr))
        if band:
            by_edge_band[band] += 1
    best = max(profitable, key=lambda record: getattr(record, edge_attr), default=None)
    return {
        "players": len(groups),
        "combinations": len(records),
        "profitable_players": sum(1 for group in groups if group.profitable()),
        "profitable_count": len(profitable),
        "multi_source_players": multi_source,
        "average_edge": (
            sum(getattr(record, edge_attr) for record in profitable) / len(profitable)
            if profitable
            else None
        ),
        "max_edge": max((getattr(record, edge_attr) for record in profitable), default=None),
        "best": (
            {
                "player": best.name,
                "source": best.source_id,
                "edge": getattr(best, edge_attr),
            }
            if best
            else None
        ),
        "by_edge_band": by_edge_band,
    }
