from __future__ import annotations

import argparse
import json
import os
import socket
import sys
import threading
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv
from flask import Flask, jsonify, request

from config import DEFAULT_JSON_OUTPUT, DEFAULT_PLACE_DEPTH, SCAN_MODES
from logging_config import setup_logging
from notifier import get_notifier
from odds import OddsParseError
from report import format_each_way_table, format_win_table, opportunities_to_json
from scanner import (
    ReferenceMarketError,
    ScannerError,
    collect_records,
    default_each_way_terms,
    iso_now,
    run_scan,
)
from settings import SettingsError, apply_config_env, load_event_config

load_dotenv()
apply_config_env()

app = Flask(__name__)
logger = structlog.get_logger()

ENV_NOTIFY = os.getenv("NOTIFY_ON_SCAN", "1").strip().lower() not in {"0", "false", "no", "off"}


def _error(message: str, code: int) -> tuple:
    return jsonify({"success": False, "error": message, "error_code": code}), code


def _parse_int(value: object, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _dispatch_notification(result: dict) -> None:
    notifier = get_notifier()
    if not notifier.is_configured:
        return
    thread = threading.Thread(target=notifier.notify_scan, args=(result,), daemon=True)
    thread.start()


@app.route("/health", methods=["GET"])
def health() -> tuple:
    return jsonify({"status": "ok"}), 200


@app.route("/scan", methods=["POST"])
def scan() -> tuple:
    raw_body = request.get_data(as_text=True) or ""
    try:
        payload = json.loads(raw_body) if raw_body.strip() else {}
    except ValueError:
        return _error("Invalid JSON payload", 400)
    if not isinstance(payload, dict):
        return _error("Scan payload must be a JSON object", 400)

    each_way = payload.get("defaultEachWay") or {}
    if not isinstance(each_way, dict):
        each_way = {}
    fraction = each_way.get("fraction")
    places = each_way.get("places")
    try:
        terms = default_each_way_terms(
            fraction if isinstance(fraction, str) else None,
            _parse_int(places, 0) or None,
        )
    except OddsParseError as exc:
        return _error(f"Invalid default each-way terms: {exc}", 400)
    place_depth = _parse_int(payload.get("placeDepth"), DEFAULT_PLACE_DEPTH)

    result = run_scan(
        payload,
        default_terms=terms,
        default_depth=place_depth,
    )
    if result.get("success") and ENV_NOTIFY:
        _dispatch_notification(result)
    status = 200 if result.get("success") else result.get("error_code", 500)
    return jsonify(result), status


def _port_available(port: int) -> bool:
    if port <= 0:
        return False
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(0.5)
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


def _choose_port(preferred: Optional[int]) -> int:
    candidates = []
    if preferred:
        candidates.append(preferred)
    candidates.extend([5000, 5050, 8000])
    seen = set()
    for port in candidates:
        if port in seen:
            continue
        seen.add(port)
        if _port_available(port):
            return port
    return 0  # fall back to OS-chosen port


def _place_overrides(events_path: Optional[str], event_name: str) -> dict:
    if not events_path:
        return {}
    overrides: dict = {}
    for event in load_event_config(events_path):
        if not event_name or event.name == event_name:
            overrides.update(event.place_overrides())
    return overrides


def scan_file(
    path: str,
    mode: Optional[str] = None,
    events_path: Optional[str] = None,
    json_out: Optional[str] = None,
    colour: bool = True,
) -> int:
    """Run a scan over a captured payload file and print the comparison table."""
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.error("scan_file_unreadable", path=path, error=str(exc))
        return 2
    event_name = str(payload.get("event") or "") if isinstance(payload, dict) else ""
    try:
        result = collect_records(
            payload,
            mode=mode,
            place_overrides=_place_overrides(events_path, event_name),
        )
    except (ScannerError, SettingsError) as exc:
        logger.error("scan_rejected", error=str(exc))
        return 2
    except ReferenceMarketError as exc:
        logger.error("scan_missing_reference", error=str(exc))
        return 3

    if result.mode == "win":
        print(format_win_table(result.records, colour=colour))
    else:
        print(format_each_way_table(result.records, colour=colour))
    for item in result.source_errors:
        print(f"  ! {item['source']}: {item['error']}")

    if json_out:
        text = opportunities_to_json(
            result.records,
            timestamp=iso_now(),
            event_name=result.event,
            mode=result.mode,
        )
        Path(json_out).write_text(text, encoding="utf-8")
        logger.info("json_written", path=json_out, opportunities=len(result.records))
    return 0


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Golf each-way edge scanner")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the JSON API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the local server on (default 5000, auto-fallback if busy)",
    )

    scan_parser = subparsers.add_parser("scan", help="Scan a captured payload file")
    scan_parser.add_argument("file", help="Scan payload JSON file")
    scan_parser.add_argument("--mode", choices=SCAN_MODES, default=None)
    scan_parser.add_argument("--events", default=None, help="Event config with per-page place counts")
    scan_parser.add_argument(
        "--json",
        nargs="?",
        const=DEFAULT_JSON_OUTPUT,
        default=None,
        dest="json_out",
        help=f"Also write results as JSON (default {DEFAULT_JSON_OUTPUT})",
    )
    scan_parser.add_argument("--no-colour", action="store_true", help="Plain table output")

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    if args.command == "scan":
        return scan_file(
            args.file,
            mode=args.mode,
            events_path=args.events,
            json_out=args.json_out,
            colour=not args.no_colour and sys.stdout.isatty(),
        )

    port = _choose_port(getattr(args, "port", None))
    logger.info("server_starting", port=port)
    app.run(port=port or 0, debug=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
