# This module produces simulated salary benchmarks for a role level, location and currency.
# It exists so offer analysis has percentile anchors before a real market-data feed is wired in.
# Percentiles, market temperatures and currency factors are loaded from `market_data.yaml`.
# Locations resolve by substring match against known cities and fall back to `default`.

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

DEFAULT_MARKET_DATA_PATH = Path(__file__).with_name("market_data.yaml")

ROLE_LEVELS: tuple[str, ...] = (
    "intern",
    "junior",
    "mid",
    "senior",
    "staff",
    "principal",
    "director",
    "vp",
    "executive",
)
MIN_SAMPLE_SIZE = 200
SAMPLE_SIZE_SPREAD = 500


@dataclass(frozen=True)
class MarketData:
    data_source: str
    percentiles: dict[str, dict[str, dict[str, int]]]
    temperatures: dict[str, str]
    temperature_config: dict[str, dict[str, Any]]
    currency_factors: dict[str, float]


def load_market_data(path: Path = DEFAULT_MARKET_DATA_PATH) -> MarketData:
    with open(path, encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Market data file {path} must be a YAML mapping")

    percentiles = {str(level): dict(locations) for level, locations in dict(raw.get("percentiles", {})).items()}
    missing_levels = set(ROLE_LEVELS).difference(percentiles)
    if missing_levels:
        raise ValueError(f"Market data file {path} missing role levels: {sorted(missing_levels)}")
    for level, locations in percentiles.items():
        if "default" not in locations:
            raise ValueError(f"Market data for level '{level}' in {path} must define a 'default' location")

    temperatures = {str(key): str(value) for key, value in dict(raw.get("temperatures", {})).items()}
    temperature_config = {str(key): dict(value) for key, value in dict(raw.get("temperature_config", {})).items()}
    unknown = set(temperatures.values()).difference(temperature_config)
    if unknown or "default" not in temperatures:
        raise ValueError(f"Market data file {path} has inconsistent temperature settings")

    return MarketData(
        data_source=str(raw.get("data_source", "")),
        percentiles=percentiles,
        temperatures=temperatures,
        temperature_config=temperature_config,
        currency_factors={str(key): float(value) for key, value in dict(raw.get("currency_factors", {})).items()},
    )


@lru_cache(maxsize=1)
def get_market_data() -> MarketData:
    return load_market_data()


def supported_currencies() -> list[str]:
    return list(get_market_data().currency_factors)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def resolve_location_key(level: str, location: str) -> str:
    normalized = location.lower().strip()
    for key in get_market_data().percentiles[level]:
        if key in normalized:
            return key
    return "default"


def resolve_market_temperature(industry: str | None, location_key: str) -> str:
    temperatures = get_market_data().temperatures
    industry_key = (industry or "tech").lower()
    for key in (f"{industry_key}_{location_key}", f"{industry_key}_default"):
        if key in temperatures:
            return temperatures[key]
    return temperatures["default"]


def get_temperature_config(temperature: str) -> dict[str, Any]:
    return get_market_data().temperature_config[temperature]


def fetch_market_data(
    role: str,
    level: str,
    location: str,
    currency: str,
    industry: str | None = None,
    *,
    rng: random.Random | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Build a benchmark for the offer; percentiles are converted from USD and rounded."""

    market = get_market_data()
    if level not in market.percentiles:
        raise ValueError(f"Unknown role level: {level}")
    if currency not in market.currency_factors:
        raise ValueError(f"Unsupported currency: {currency}")

    location_key = resolve_location_key(level, location)
    data = market.percentiles[level][location_key]
    temperature = resolve_market_temperature(industry, location_key)
    config = market.temperature_config[temperature]
    factor = market.currency_factors[currency]
    sampler = rng or random.Random()

    return {
        "role": role,
        "level": level,
        "location": location,
        "currency": currency,
        "percentile25": _round_half_up(data["p25"] * factor),
        "percentile50": _round_half_up(data["p50"] * factor),
        "percentile75": _round_half_up(data["p75"] * factor),
        "percentile90": _round_half_up(data["p90"] * factor),
        "sample_size": sampler.randrange(SAMPLE_SIZE_SPREAD) + MIN_SAMPLE_SIZE,
        "data_source": market.data_source,
        "last_updated": (today or date.today()).isoformat(),
        "market_temperature": temperature,
        "temperature_label": config["label"],
        "temperature_reason": config["advice"],
        "yoy_change": float(config["yoy_change"]),
    }
