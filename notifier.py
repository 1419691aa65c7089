"""External notification of positive each-way / win edges.

Supports two channels:
- **Webhook**: HTTP POST with JSON payload (configurable URL + optional HMAC signing)
- **Telegram**: Bot API message to a chat

Configuration (via .env or environment variables)
-------------------------------------------------
    NOTIFY_WEBHOOK_URL=https://your-endpoint/edge-alert
    NOTIFY_WEBHOOK_SECRET=optional_hmac_secret
    NOTIFY_TELEGRAM_TOKEN=123456:ABCdef...
    NOTIFY_TELEGRAM_CHAT_ID=-1001234567890
    NOTIFY_MIN_EDGE=2.0       # Only notify for edge >= this percent
    NOTIFY_TOP_N=5            # Players listed per alert
    NOTIFY_TIMEOUT_SECONDS=10 # HTTP request timeout
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
from datetime import datetime, timezone
from typing import List, Optional

import requests
import structlog

logger = structlog.get_logger()

EDGE_KEYS = ("combined_edge", "win_edge")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)).strip())
    except ValueError:
        return default


NOTIFY_WEBHOOK_URL: str = os.getenv("NOTIFY_WEBHOOK_URL", "").strip()
NOTIFY_WEBHOOK_SECRET: str = os.getenv("NOTIFY_WEBHOOK_SECRET", "").strip()
NOTIFY_TELEGRAM_TOKEN: str = os.getenv("NOTIFY_TELEGRAM_TOKEN", "").strip()
NOTIFY_TELEGRAM_CHAT_ID: str = os.getenv("NOTIFY_TELEGRAM_CHAT_ID", "").strip()
NOTIFY_MIN_EDGE: float = _env_float("NOTIFY_MIN_EDGE", 0.0)
NOTIFY_TOP_N: int = max(1, int(_env_float("NOTIFY_TOP_N", 5)))
NOTIFY_TIMEOUT_SECONDS: int = max(1, int(_env_float("NOTIFY_TIMEOUT_SECONDS", 10)))


def edge_of(item: dict) -> Optional[float]:
    """Return the ranking edge of a serialized record (combined edge, else win edge)."""
    for key in EDGE_KEYS:
        value = item.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    return None


class Notifier:
    """Send edge alerts via Webhook and/or Telegram."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        telegram_token: Optional[str] = None,
        telegram_chat_id: Optional[str] = None,
        min_edge: float = NOTIFY_MIN_EDGE,
        top_n: int = NOTIFY_TOP_N,
        timeout: int = NOTIFY_TIMEOUT_SECONDS,
    ) -> None:
        self.webhook_url = (webhook_url or NOTIFY_WEBHOOK_URL).strip()
        self.webhook_secret = (webhook_secret or NOTIFY_WEBHOOK_SECRET).strip()
        self.telegram_token = (telegram_token or NOTIFY_TELEGRAM_TOKEN).strip()
        self.telegram_chat_id = (telegram_chat_id or NOTIFY_TELEGRAM_CHAT_ID).strip()
        self.min_edge = min_edge
        self.top_n = top_n
        self.timeout = timeout
        self.logger = logger.bind(component="notifier")

    @property
    def is_configured(self) -> bool:
        """Return True if at least one notification channel is enabled."""
        return bool(self.webhook_url) or bool(
            self.telegram_token and self.telegram_chat_id
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def notify_scan(self, scan_result: dict) -> dict:
        """Filter a ``run_scan`` result by ``min_edge`` and send alerts."""
        if not self.is_configured:
            return {"sent": False, "reason": "not_configured"}
        if not isinstance(scan_result, dict) or not scan_result.get("success"):
            return {"sent": False, "reason": "scan_failed"}

        filtered = []
        for item in scan_result.get("opportunities") or []:
            if not isinstance(item, dict):
                continue
            edge = edge_of(item)
            if edge is not None and edge > 0 and edge >= self.min_edge:
                filtered.append(item)
        if not filtered:
            return {"sent": False, "reason": "nothing_above_threshold"}

        summary = scan_result.get("summary") or {}
        alert = {
            "scan_time": scan_result.get("scan_time") or _utc_now(),
            "event": scan_result.get("event"),
            "mode": scan_result.get("mode"),
            "opportunity_count": len(filtered),
            "top_opportunities": self._top(filtered),
            "multi_source_players": [
                entry.get("player") for entry in summary.get("multi_source_players") or []
            ],
        }

        results: dict = {"sent": False, "channels": {}}
        if self.webhook_url:
            results["channels"]["webhook"] = self._send_webhook(alert)
            results["sent"] = True
        if self.telegram_token and self.telegram_chat_id:
            results["channels"]["telegram"] = self._send_telegram(
                self._format_telegram_message(alert)
            )
            results["sent"] = True
        self.logger.info("alert_dispatched", count=len(filtered), channels=list(results["channels"]))
        return results

    # ------------------------------------------------------------------
    # Channel senders
    # ------------------------------------------------------------------

    def _send_webhook(self, payload: dict) -> dict:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if self.webhook_secret:
            sig = hmac.new(
                self.webhook_secret.encode("utf-8"), body, hashlib.sha256
            ).hexdigest()
            headers["X-Signature-SHA256"] = f"sha256={sig}"
        try:
            resp = requests.post(
                self.webhook_url,
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
            return {"ok": resp.ok, "status_code": resp.status_code}
        except requests.RequestException as exc:
            self.logger.warning("webhook_failed", error=str(exc))
            return {"ok": False, "error": str(exc)}

    def _send_telegram(self, message: str) -> dict:
        url = f"https://api.telegram.org/bot{self.telegram_token}/sendMessage"
        try:
            resp = requests.post(
                url,
                json={
                    "chat_id": self.telegram_chat_id,
                    "text": message,
                    "parse_mode": "HTML",
                },
                timeout=self.timeout,
            )
            return {"ok": resp.ok, "status_code": resp.status_code}
        except requests.RequestException as exc:
            self.logger.warning("telegram_failed", error=str(exc))
            return {"ok": False, "error": str(exc)}

    # ------------------------------------------------------------------
    # Formatters
    # ------------------------------------------------------------------

    def _top(self, items: List[dict]) -> List[dict]:
        ranked = sorted(items, key=lambda item: edge_of(item) or 0.0, reverse=True)
        out = []
        for item in ranked[: self.top_n]:
            out.append(
                {
                    "player": item.get("name"),
                    "bookmaker": item.get("bookmaker") or item.get("source_id"),
                    "odds": item.get("offer_odds"),
                    "places": item.get("place_depth"),
                    "edge": edge_of(item),
                }
            )
        return out

    @staticmethod
    def _format_telegram_message(alert: dict) -> str:
        title = alert.get("event") or "Golf"
        lines = [
            f"<b>{title} edge alert</b>  {alert['scan_time']}",
            f"{alert['opportunity_count']} positive {'win' if alert.get('mode') == 'win' else 'each-way'} edges",
            "",
        ]
        for item in alert["top_opportunities"]:
            places = f" ({item['places']} places)" if item.get("places") else ""
            lines.append(
                f"  • {item.get('player')} {item.get('odds')} @ {item.get('bookmaker')}{places} "
                f"edge={item.get('edge'):+.1f}%"
            )
        if alert.get("multi_source_players"):
            lines.append("")
            lines.append("Multiple bookmakers: " + ", ".join(alert["multi_source_players"]))
        return "\n".join(lines)


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


_default_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Return the module-level singleton Notifier."""
    global _default_notifier
    if _default_notifier is None:
        _default_notifier = Notifier()
    return _default_notifier
