"""Console tables and JSON export for ranked edge records."""

from __future__ import annotations

import json
from typing import List, Sequence

from arbitrage import ArbitrageRecord, WinRecord, group_by_entity, summarize
from providers import provider_title

GREEN = "\033[32m"
RESET = "\033[0m"


def _edge_text(edge: float, colour: bool) -> str:
    text = f"{edge:+6.2f}%"
    if colour and edge > 0:
        return f"{GREEN}{text}{RESET}"
    return text


def format_each_way_table(records: Sequence[ArbitrageRecord], colour: bool = True) -> str:
    width = 120
    lines = [
        "=" * width,
        "E/W COMPARISON: Bookmaker vs Betfair Lay",
        "Edge = ((BM_Win/BF_Win - 1) + (BM_Place/BF_Place - 1)) / 2",
        "=" * width,
    ]
    if not records:
        lines.append("No players matched across bookmakers and Betfair.")
        lines.append("=" * width)
        return "\n".join(lines)

    lines.append(
        "%-22s | %-11s | %3s | %7s | %7s | %7s | %7s | %7s | %7s | %7s"
        % ("Player", "Bookmaker", "Plc", "BM Win", "BF Win", "Win%", "BM Plc", "BF Plc", "Plc%", "Edge%")
    )
    lines.append("-" * width)
    groups = group_by_entity(records, "combined_edge")
    for index, group in enumerate(groups):
        for position, record in enumerate(group.records):
            lines.append(
                "%-22s | %-11s | %3d | %7.2f | %7.2f | %+6.1f%% | %7.2f | %7.2f | %+6.1f%% | %s"
                % (
                    group.name[:22] if position == 0 else "",
                    provider_title(record.source_id)[:11],
                    record.place_depth,
                    record.offer_win_price,
                    record.reference_win_price,
                    record.win_edge,
                    record.offer_place_price,
                    record.reference_place_price,
                    record.place_edge,
                    _edge_text(record.combined_edge, colour),
                )
            )
        if index < len(groups) - 1:
            lines.append("-" * width)

    summary = summarize(records, "combined_edge")
    lines.append("=" * width)
    lines.append(f"Total: {summary['players']} players | {summary['combinations']} combinations")
    lines.append(
        f"Players with profitable bets: {summary['profitable_players']} | "
        f"Total profitable bets: {summary['profitable_count']}"
    )
    multi = summary["multi_source_players"]
    if multi:
        lines.append(f"Players profitable at MULTIPLE bookmakers: {len(multi)}")
        for entry in multi:
            books = ", ".join(
                f"{provider_title(item['source'])} ({item['edge']:+.1f}%)" for item in entry["sources"]
            )
            lines.append(f"  {entry['player']}: {books}")
    if summary["profitable_count"]:
        lines.append(
            f"Profitable avg edge: {summary['average_edge']:.2f}% | Max edge: {summary['max_edge']:.2f}%"
        )
    lines.append("=" * width)
    return "\n".join(lines)


def format_win_table(records: Sequence[WinRecord], colour: bool = True) -> str:
    width = 80
    lines = [
        "=" * width,
        "WIN COMPARISON: Bookmaker vs Betfair Lay",
        "Edge = (BM_Win / BF_Win - 1) * 100",
        "=" * width,
    ]
    if not records:
        lines.append("No players matched across bookmakers and Betfair.")
        lines.append("=" * width)
        return "\n".join(lines)

    lines.append("%-22s | %-11s | %7s | %7s | %7s" % ("Player", "Bookmaker", "BM Win", "BF Win", "Edge%"))
    lines.append("-" * width)
    groups = group_by_entity(records, "win_edge")
    for index, group in enumerate(groups):
        for position, record in enumerate(group.records):
            lines.append(
                "%-22s | %-11s | %7.2f | %7.2f | %s"
                % (
                    group.name[:22] if position == 0 else "",
                    provider_title(record.source_id)[:11],
                    record.offer_win_price,
                    record.reference_win_price,
                    _edge_text(record.win_edge, colour),
                )
            )
        if index < len(groups) - 1:
            lines.append("-" * width)

    summary = summarize(records, "win_edge")
    lines.append("=" * width)
    lines.append(f"Total: {summary['players']} players | {summary['combinations']} combinations")
    lines.append(f"Profitable: {summary['profitable_count']}")
    if summary["profitable_count"]:
        lines.append(f"Avg edge: {summary['average_edge']:.2f}% | Max edge: {summary['max_edge']:.2f}%")
    lines.append("=" * width)
    return "\n".join(lines)


def _json_row(record) -> dict:
    row = {
        "player": record.name,
        "bookmaker": provider_title(record.source_id),
        "bmWinOdds": record.offer_odds,
        "bmWin": round(record.offer_win_price, 2),
        "bfWin": round(record.reference_win_price, 2),
    }
    if isinstance(record, ArbitrageRecord):
        row.update(
            {
                "bmPlace": round(record.offer_place_price, 2),
                "bfPlace": round(record.reference_place_price, 2),
                "winEdge": round(record.win_edge, 2),
                "placeEdge": round(record.place_edge, 2),
                "edge": round(record.combined_edge, 2),
                "places": record.place_depth,
            }
        )
    else:
        row["edge"] = round(record.win_edge, 2)
    return row


def opportunities_to_json(
    records: Sequence[object], timestamp: str, event_name: str, mode: str = "each_way"
) -> str:
    """Serialize records in the shape the web frontend reads from data.json."""
    bookmakers: List[str] = sorted({provider_title(record.source_id) for record in records})
    payload = {
        "timestamp": timestamp,
        "eventName": event_name,
        "mode": "WIN" if mode == "win" else "EW",
        "bookmakers": bookmakers,
        "opportunities": [_json_row(record) for record in records],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)
