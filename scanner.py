"""Scan orchestration: acquired quotes in, ranked each-way / win edges out."""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from arbitrage import (
    BookmakerOffer,
    EachWayCalculator,
    Record,
    ReferenceMarketError,
    find_win_opportunities,
    group_by_entity,
    summarize,
)
from config import (
    DEFAULT_EACH_WAY_FRACTION,
    DEFAULT_EACH_WAY_PLACES,
    DEFAULT_PLACE_DEPTH,
    DEFAULT_SCAN_MODE,
    EXCHANGE_MARKETS,
    SCAN_MODES,
)
from markets import Present, SnapshotResult, Unavailable, build_snapshot
from odds import EachWayTerms, OddsParseError, parse_each_way_terms
from providers import is_exchange, provider_title, resolve_provider_key

logger = structlog.get_logger()

EDGE_FIELDS = {"each_way": "combined_edge", "win": "win_edge"}
REQUIRED_MARKETS = {"each_way": ("win", "top5", "top10"), "win": ("win",)}


class ScannerError(Exception):
    """Raised for malformed scan payloads."""


def iso_now() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _is_available(raw: Mapping) -> bool:
    status = str(raw.get("status") or "ok").strip().lower()
    return status in {"ok", "available", "success"}


def _quotes(raw: Mapping, label: str) -> list:
    quotes = raw.get("quotes") or []
    if not isinstance(quotes, list):
        raise ScannerError(f"Quotes for {label} must be a list")
    return quotes


def _exchange_market(raw: object, market_key: str, event_name: str) -> SnapshotResult:
    source_id = f"betfair:{market_key}"
    if raw is None:
        return Unavailable(source_id, "not supplied")
    if not isinstance(raw, Mapping):
        raise ScannerError(f"Exchange market {market_key!r} must be an object")
    if not _is_available(raw):
        return Unavailable(source_id, str(raw.get("reason") or "source unavailable"))
    snapshot = build_snapshot(
        source_id,
        _quotes(raw, market_key),
        depth=EXCHANGE_MARKETS[market_key]["depth"],
        event_name=event_name,
    )
    return Present(snapshot)


def _each_way_terms(raw: object, source: str) -> Optional[EachWayTerms]:
    if raw is None or raw == "":
        return None
    try:
        if isinstance(raw, str):
            return parse_each_way_terms(raw)
        if isinstance(raw, Mapping):
            return EachWayTerms.parse(raw.get("fraction"), raw.get("places"))
    except OddsParseError as exc:
        logger.warning("each_way_terms_invalid", source=source, reason=str(exc))
        return None
    logger.warning("each_way_terms_invalid", source=source, reason="unsupported format")
    return None


def _places(value: object, source: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        places = int(value)
    except (TypeError, ValueError):
        places = 0
    if places < 1:
        logger.warning("places_override_invalid", source=source, places=value)
        return None
    return places


def build_offers(
    bookmakers: Sequence[object],
    event_name: str = "",
    place_overrides: Optional[Mapping[str, int]] = None,
) -> Tuple[List[BookmakerOffer], List[dict]]:
    """Turn bookmaker payload entries into offers plus a list of per-source errors."""
    offers: List[BookmakerOffer] = []
    source_errors: List[dict] = []
    overrides = place_overrides or {}
    for raw in bookmakers:
        if not isinstance(raw, Mapping):
            raise ScannerError("Bookmaker entries must be objects")
        source = str(raw.get("source") or raw.get("url") or raw.get("bookmaker") or "").strip()
        if not source:
            raise ScannerError("Bookmaker entry without a source")
        if not _is_available(raw):
            reason = str(raw.get("reason") or "source unavailable")
            logger.warning("bookmaker_unavailable", source=source, reason=reason)
            source_errors.append({"source": source, "error": reason})
            continue
        provider = resolve_provider_key(raw.get("bookmaker")) or resolve_provider_key(source)
        if is_exchange(provider):
            logger.warning("exchange_page_as_bookmaker", source=source)
            source_errors.append({"source": source, "error": "exchange is not a bookmaker"})
            provider = None
        elif provider is None:
            source_errors.append({"source": source, "error": "unknown bookmaker"})
        places = _places(raw.get("places"), source)
        if places is None:
            places = overrides.get(source)
        offers.append(
            BookmakerOffer(
                provider=provider,
                snapshot=build_snapshot(source, _quotes(raw, source), event_name=event_name),
                terms=_each_way_terms(raw.get("each_way"), source),
                places=places,
            )
        )
    return offers, source_errors


def default_each_way_terms(
    fraction: Optional[str] = None, places: Optional[int] = None
) -> EachWayTerms:
    """Default each-way terms from arguments, then ``EW_DEFAULT_TERMS`` / ``EW_DEFAULT_PLACES``."""
    fraction = fraction or os.getenv("EW_DEFAULT_TERMS", "").strip() or DEFAULT_EACH_WAY_FRACTION
    if places is None:
        places = _places(os.getenv("EW_DEFAULT_PLACES"), "env") or DEFAULT_EACH_WAY_PLACES
    return EachWayTerms.parse(fraction, places)


def _missing_markets(markets: Dict[str, SnapshotResult], mode: str) -> List[str]:
    return [
        EXCHANGE_MARKETS[key]["name"]
        for key in REQUIRED_MARKETS[mode]
        if not isinstance(markets[key], Present)
    ]


def _error(message: str, code: int) -> dict:
    return {"success": False, "error": message, "error_code": code}


class MissingMarketsError(ReferenceMarketError):
    """Raised when exchange markets required by the scan mode were not acquired."""


@dataclass(frozen=True)
class ScanResult:
    event: str
    mode: str
    records: List[Record]
    source_errors: List[dict]
    terms: EachWayTerms
    default_depth: int

    @property
    def edge_attr(self) -> str:
        return EDGE_FIELDS[self.mode]


def collect_records(
    payload: object,
    mode: Optional[str] = None,
    default_terms: Optional[EachWayTerms] = None,
    default_depth: int = DEFAULT_PLACE_DEPTH,
    place_overrides: Optional[Mapping[str, int]] = None,
) -> ScanResult:
    """Run the engine over a scan payload.

    Raises ``ScannerError`` for malformed payloads and ``ReferenceMarketError``
    when the exchange markets the mode needs are unavailable.
    """
    if not isinstance(payload, Mapping):
        raise ScannerError("Scan payload must be a JSON object")
    mode = str(mode or payload.get("mode") or DEFAULT_SCAN_MODE).strip().lower()
    if mode not in SCAN_MODES:
        raise ScannerError(f"Unknown scan mode: {mode}")
    event_name = str(payload.get("event") or "").strip()
    log = logger.bind(event=event_name, mode=mode)

    exchange = payload.get("exchange") or {}
    bookmakers = payload.get("bookmakers") or []
    if not isinstance(exchange, Mapping):
        raise ScannerError("'exchange' must be an object")
    if not isinstance(bookmakers, list):
        raise ScannerError("'bookmakers' must be a list")
    markets = {key: _exchange_market(exchange.get(key), key, event_name) for key in EXCHANGE_MARKETS}
    offers, source_errors = build_offers(bookmakers, event_name, place_overrides)
    try:
        terms = default_terms or default_each_way_terms()
    except OddsParseError as exc:
        raise ScannerError(f"Invalid default each-way terms: {exc}") from exc

    missing = _missing_markets(markets, mode)
    if missing:
        log.warning("scan_missing_exchange_markets", missing=missing)
        raise MissingMarketsError(f"Cannot calculate: need Betfair {', '.join(missing)} market(s)")

    if mode == "win":
        records: List[Record] = list(find_win_opportunities(offers, markets["win"]))
    else:
        calculator = EachWayCalculator(
            markets["win"],
            markets["top5"],
            markets["top10"],
            default_terms=terms,
            default_depth=default_depth,
        )
        records = list(calculator.find_opportunities(offers))
    log.info(
        "scan_complete",
        offers=len(offers),
        opportunities=len(records),
        source_errors=len(source_errors),
    )
    return ScanResult(event_name, mode, records, source_errors, terms, default_depth)


def scan_payload(result: ScanResult) -> dict:
    opportunities = []
    for record in result.records:
        item = record.to_dict()
        item["bookmaker"] = provider_title(record.source_id)
        opportunities.append(item)
    return {
        "success": True,
        "scan_time": iso_now(),
        "event": result.event,
        "mode": result.mode,
        "opportunities": opportunities,
        "opportunities_count": len(opportunities),
        "groups": [group.to_dict() for group in group_by_entity(result.records, result.edge_attr)],
        "summary": summarize(result.records, result.edge_attr),
        "bookmakers": sorted({provider_title(record.source_id) for record in result.records}),
        "source_errors": result.source_errors,
        "partial": bool(result.source_errors),
        "defaults": {
            "each_way_terms": result.terms.fraction,
            "each_way_places": result.terms.places,
            "place_depth": result.default_depth,
        },
    }


def run_scan(
    payload: object,
    mode: Optional[str] = None,
    default_terms: Optional[EachWayTerms] = None,
    default_depth: int = DEFAULT_PLACE_DEPTH,
    place_overrides: Optional[Mapping[str, int]] = None,
) -> dict:
    try:
        result = collect_records(payload, mode, default_terms, default_depth, place_overrides)
    except ScannerError as exc:
        logger.warning("scan_payload_rejected", reason=str(exc))
        return _error(str(exc), 400)
    except ReferenceMarketError as exc:
        return _error(str(exc), 422)
    return scan_payload(result)
