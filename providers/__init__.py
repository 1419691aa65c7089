from __future__ import annotations

from typing import Dict, Optional

PROVIDER_TITLES: Dict[str, str] = {
    "ladbrokes": "Ladbrokes",
    "ten_bet": "10Bet",
    "paddy_power": "Paddy Power",
    "boylesports": "BoyleSports",
    "skybet": "Sky Bet",
    "betfair": "Betfair",
}

EXCHANGE_PROVIDERS = {"betfair"}

PROVIDER_URL_MARKERS: Dict[str, str] = {
    "ladbrokes.com": "ladbrokes",
    "10bet.co.uk": "ten_bet",
    "paddypower.com": "paddy_power",
    "boylesports.com": "boylesports",
    "skybet.com": "skybet",
    "betfair.com": "betfair",
}

PROVIDER_ALIASES: Dict[str, str] = {
    "ladbrokes": "ladbrokes",
    "ten_bet": "ten_bet",
    "tenbet": "ten_bet",
    "10bet": "ten_bet",
    "10_bet": "ten_bet",
    "paddy_power": "paddy_power",
    "paddypower": "paddy_power",
    "paddy power": "paddy_power",
    "boylesports": "boylesports",
    "boyle sports": "boylesports",
    "skybet": "skybet",
    "sky bet": "skybet",
    "sky_bet": "skybet",
    "betfair": "betfair",
}


def resolve_provider_key(value: object) -> Optional[str]:
    """Map a provider name, alias or page URL to its provider key."""
    if not isinstance(value, str):
        return None
    raw = value.strip().lower()
    if not raw:
        return None
    if raw in PROVIDER_TITLES:
        return raw
    if raw in PROVIDER_ALIASES:
        return PROVIDER_ALIASES[raw]
    compact = raw.replace("-", "_").replace(" ", "_")
    if compact in PROVIDER_TITLES:
        return compact
    if compact in PROVIDER_ALIASES:
        return PROVIDER_ALIASES[compact]
    for marker, key in PROVIDER_URL_MARKERS.items():
        if marker in raw:
            return key
    return None


def provider_title(key: str) -> str:
    return PROVIDER_TITLES.get(key, key)


def is_exchange(key: Optional[str]) -> bool:
    return key in EXCHANGE_PROVIDERS
