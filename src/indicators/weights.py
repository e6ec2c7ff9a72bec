# This module loads the industry weight profiles used to turn indicator scores into one overall score.
# It exists so different fields (nursing, retail, software) can value the same indicators differently.
# Profiles live in `industry_weights.yaml` and are validated to sum to 1.0 when first loaded.
# Unknown industries resolve through keyword containment and finally fall back to `generic`.

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from src.indicators.catalog import INDICATOR_NAMES

DEFAULT_WEIGHTS_PATH = Path(__file__).with_name("industry_weights.yaml")
DEFAULT_INDICATOR_WEIGHT = 0.1
WEIGHT_SUM_TOLERANCE = 1e-6


@dataclass(frozen=True)
class IndustryProfile:
    industry: str
    display_name: str
    description: str
    weights: dict[int, float]


@dataclass(frozen=True)
class WeightCatalog:
    profiles: dict[str, IndustryProfile]
    keyword_map: tuple[tuple[str, str], ...]


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Weights file {path} must be a YAML mapping")
    return dict(loaded)


def _build_profile(industry: str, payload: dict[str, Any], path: Path) -> IndustryProfile:
    weights = {int(key): float(value) for key, value in dict(payload.get("weights", {})).items()}
    if set(weights) != set(INDICATOR_NAMES):
        raise ValueError(f"Industry '{industry}' in {path} must weight all ten indicators")
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ValueError(f"Industry '{industry}' weights in {path} sum to {total:.4f}, expected 1.0")
    return IndustryProfile(
        industry=industry,
        display_name=str(payload.get("display_name", industry.title())),
        description=str(payload.get("description", "")),
        weights=weights,
    )


def load_weight_catalog(path: Path = DEFAULT_WEIGHTS_PATH) -> WeightCatalog:
    raw = _load_yaml(path)
    industries = dict(raw.get("industries", {}))
    if "generic" not in industries:
        raise ValueError(f"Weights file {path} must define a 'generic' industry")

    profiles = {name: _build_profile(name, dict(payload), path) for name, payload in industries.items()}
    keyword_map: list[tuple[str, str]] = []
    for entry in list(raw.get("keyword_map", [])):
        keyword, industry = str(entry[0]), str(entry[1])
        if industry not in profiles:
            raise ValueError(f"Keyword '{keyword}' in {path} maps to unknown industry '{industry}'")
        keyword_map.append((keyword, industry))
    return WeightCatalog(profiles=profiles, keyword_map=tuple(keyword_map))


@lru_cache(maxsize=1)
def get_weight_catalog() -> WeightCatalog:
    return load_weight_catalog()


def get_industry_weights(industry: str) -> IndustryProfile:
    catalog = get_weight_catalog()
    normalized = industry.lower().strip()
    if normalized in catalog.profiles:
        return catalog.profiles[normalized]

    for keyword, mapped in catalog.keyword_map:
        if keyword in normalized:
            return catalog.profiles[mapped]
    return catalog.profiles["generic"]


def _ranked_weights(profile: IndustryProfile) -> list[tuple[int, float]]:
    # ties keep ascending indicator order
    return sorted(sorted(profile.weights.items()), key=lambda item: item[1], reverse=True)


def calculate_weighted_score(scores: dict[int, dict[str, Any]], industry: str) -> float:
    """Weighted mean over the indicators present, normalised by the weights actually used."""

    weights = get_industry_weights(industry).weights
    weighted_sum = 0.0
    total_weight = 0.0
    for indicator_id, score in scores.items():
        weight = weights.get(int(indicator_id), DEFAULT_INDICATOR_WEIGHT)
        weighted_sum += float(score["score"]) * weight
        total_weight += weight

    result = weighted_sum / total_weight if total_weight > 0 else 0.0
    return round(result, 1)


def get_top_indicators(industry: str, count: int = 3) -> list[int]:
    return [indicator_id for indicator_id, _ in _ranked_weights(get_industry_weights(industry))[:count]]


def get_indicator_importance(indicator_id: int, industry: str) -> str:
    weight = get_industry_weights(industry).weights.get(indicator_id, DEFAULT_INDICATOR_WEIGHT)
    if weight >= 0.15:
        return "critical"
    if weight >= 0.10:
        return "important"
    if weight >= 0.06:
        return "moderate"
    return "supplementary"


def format_weights_for_display(industry: str) -> list[dict[str, Any]]:
    profile = get_industry_weights(industry)
    return [
        {
            "indicator_id": indicator_id,
            "indicator_name": INDICATOR_NAMES[indicator_id],
            "weight": weight,
            "percentage": f"{int(weight * 100 + 0.5)}%",
            "importance": get_indicator_importance(indicator_id, industry),
        }
        for indicator_id, weight in _ranked_weights(profile)
    ]


def get_supported_industries() -> list[dict[str, str]]:
    return [
        {"id": name, "display_name": profile.display_name, "description": profile.description}
        for name, profile in get_weight_catalog().profiles.items()
    ]
