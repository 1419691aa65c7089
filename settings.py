"""Project configuration loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from providers import resolve_provider_key

DEFAULT_CONFIG_PATH = "settings.json"
DEFAULT_EVENTS_PATH = "config.json"


class SettingsError(Exception):
    """Raised when the event configuration file is missing or malformed."""


def _config_path() -> Path:
    raw = os.getenv("APP_CONFIG_PATH", "").strip() or DEFAULT_CONFIG_PATH
    return Path(raw)


def load_config() -> Dict[str, Any]:
    path = _config_path()
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return ""
    return str(value)


def apply_config_env() -> None:
    config = load_config()
    if not config:
        return
    for key, value in config.items():
        if not isinstance(key, str) or not key:
            continue
        if key in os.environ:
            continue
        os.environ[key] = _stringify(value)


# ---------------------------------------------------------------------------
# Event configuration (which pages make up one golf event)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PageConfig:
    url: str
    bookmaker: str
    places: Optional[int] = None

    @property
    def provider(self) -> Optional[str]:
        return resolve_provider_key(self.bookmaker) or resolve_provider_key(self.url)


@dataclass(frozen=True)
class EventConfig:
    name: str
    betfair_top5_link: str
    betfair_top10_link: str
    betfair_link: Optional[str] = None
    pages: List[PageConfig] = field(default_factory=list)

    def place_overrides(self) -> Dict[str, int]:
        """Configured place counts keyed by page URL."""
        return {page.url: page.places for page in self.pages if page.places is not None}


def _optional_int(value: Any, label: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{label} must be an integer, got {value!r}") from exc


def _parse_page(raw: Any, event_name: str) -> PageConfig:
    if not isinstance(raw, dict):
        raise SettingsError(f"Page entries for {event_name!r} must be objects")
    url = str(raw.get("url") or "").strip()
    if not url:
        raise SettingsError(f"Page without url in event {event_name!r}")
    return PageConfig(
        url=url,
        bookmaker=str(raw.get("bookmaker") or "").strip(),
        places=_optional_int(raw.get("places"), f"places for {url}"),
    )


def _first(raw: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_event_config(payload: Any) -> List[EventConfig]:
    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise SettingsError("Event configuration must be an object with an 'events' list")
    events = []
    for raw in payload["events"]:
        if not isinstance(raw, dict):
            raise SettingsError("Event entries must be objects")
        name = str(raw.get("name") or "").strip() or "Unnamed event"
        top5 = _first(raw, "betfair_top5_link", "betfairTop5Link")
        top10 = _first(raw, "betfair_top10_link", "betfairTop10Link")
        if not top5 or not top10:
            raise SettingsError(f"Event {name!r} needs both Top 5 and Top 10 exchange links")
        pages = raw.get("pages") or []
        if not isinstance(pages, list):
            raise SettingsError(f"Pages for {name!r} must be a list")
        events.append(
            EventConfig(
                name=name,
                betfair_top5_link=top5,
                betfair_top10_link=top10,
                betfair_link=_first(raw, "betfair_link", "betfairLink"),
                pages=[_parse_page(page, name) for page in pages],
            )
        )
    return events


def load_event_config(path: Optional[str] = None) -> List[EventConfig]:
    """Load the event list, raising ``SettingsError`` if the file is missing or invalid."""
    config_path = Path(path or os.getenv("EVENTS_CONFIG_PATH", "").strip() or DEFAULT_EVENTS_PATH)
    if not config_path.exists():
        raise SettingsError(f"Config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError) as exc:
        raise SettingsError(f"Could not read {config_path}: {exc}") from exc
    return parse_event_config(payload)
