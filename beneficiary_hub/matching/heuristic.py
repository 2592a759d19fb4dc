from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from rapidfuzz import fuzz, utils

from .ranker import CandidateRanker, RankingRequest

# Default feature weights
RESOURCE_WEIGHT = 0.35
GEOGRAPHY_WEIGHT = 0.20
PRIORITY_WEIGHT = 0.20
IMPACT_WEIGHT = 0.15
NEED_WEIGHT = 0.10

PRIORITY_LEVELS = {
    "critical": 1.0,
    "urgent": 1.0,
    "high": 0.8,
    "medium": 0.5,
    "normal": 0.5,
    "low": 0.25,
}

URGENCY_BOOST = {"urgent": 0.1, "high": 0.05}


def _clean_text(value: object | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def _flatten_items(items: Iterable[Any] | None) -> list[str]:
    """Pull readable names out of free-form item lists (strings or dicts)."""
    words: list[str] = []
    for item in items or ():
        if isinstance(item, Mapping):
            for key in ("name", "item", "category", "description"):
                text = _clean_text(item.get(key))
                if text:
                    words.append(text)
        else:
            text = _clean_text(item)
            if text:
                words.append(text)
    return words


def _donation_text(donation: Mapping[str, Any]) -> str:
    parts = [
        _clean_text(donation.get("title")),
        _clean_text(donation.get("donation_type")),
        _clean_text(donation.get("description")),
        *_flatten_items(donation.get("items")),
    ]
    return " ".join(part for part in parts if part)


def _application_text(application: Mapping[str, Any]) -> str:
    parts = [
        _clean_text(application.get("application_title")),
        _clean_text(application.get("application_type")),
        *_flatten_items(application.get("resources_needed")),
        _clean_text(application.get("current_situation")),
    ]
    return " ".join(part for part in parts if part)


def compute_resource_similarity(donation: Mapping[str, Any], application: Mapping[str, Any]) -> float:
    """Token-set similarity between what is offered and what is asked for (0..1)."""
    offered = _donation_text(donation)
    needed = _application_text(application)
    if not offered or not needed:
        return 0.0
    return float(fuzz.token_set_ratio(offered, needed, processor=utils.default_process) / 100.0)


def compute_geography(donation: Mapping[str, Any], school: Mapping[str, Any]) -> float:
    donation_province = _clean_text(donation.get("province")).lower()
    school_province = _clean_text(school.get("province")).lower()
    if donation_province and donation_province == school_province:
        donation_city = _clean_text(donation.get("city")).lower()
        school_district = _clean_text(school.get("district")).lower()
        if donation_city and donation_city == school_district:
            return 1.0
        return 0.8
    # Out of province only works when the donor can deliver.
    return 0.4 if donation.get("delivery_available") else 0.0


def compute_priority(donation: Mapping[str, Any], application: Mapping[str, Any]) -> float:
    base = PRIORITY_LEVELS.get(_clean_text(application.get("priority_level")).lower(), 0.4)
    boost = URGENCY_BOOST.get(_clean_text(donation.get("urgency_level")).lower(), 0.0)
    return min(1.0, base + boost)


def compute_impact(application: Mapping[str, Any], school: Mapping[str, Any]) -> float:
    count = application.get("beneficiaries_count") or school.get("total_students") or 0
    try:
        count = max(0, int(count))
    except (TypeError, ValueError):
        count = 0
    # 1000+ beneficiaries saturates the feature.
    return min(1.0, math.log10(count + 1) / 3.0)


def compute_need(school: Mapping[str, Any]) -> float:
    missing = [
        not school.get("has_electricity"),
        not school.get("has_running_water"),
        not school.get("has_library"),
    ]
    return sum(missing) / len(missing)


def weighted_score(features: dict[str, float]) -> float:
    """Compute a weighted composite score (0..1); missing keys default to 0.0."""
    weights = {
        "resource": RESOURCE_WEIGHT,
        "geography": GEOGRAPHY_WEIGHT,
        "priority": PRIORITY_WEIGHT,
        "impact": IMPACT_WEIGHT,
        "need": NEED_WEIGHT,
    }
    total = 0.0
    for key, weight in weights.items():
        total += weight * max(0.0, min(1.0, features.get(key, 0.0)))
    return float(max(0.0, min(1.0, total)))


def _justify(features: dict[str, float], school: Mapping[str, Any]) -> str:
    reasons = []
    if features["resource"] >= 0.6:
        reasons.append("the donation closely matches the resources requested")
    elif features["resource"] >= 0.3:
        reasons.append("the donation partially covers the resources requested")
    else:
        reasons.append("the donation only loosely relates to the request")
    if features["geography"] >= 0.8:
        reasons.append("the school is in the donor's province")
    elif features["geography"] > 0:
        reasons.append("delivery is available to the school's area")
    if features["priority"] >= 0.8:
        reasons.append("the application is high priority")
    if features["need"] >= 0.66:
        reasons.append("the school lacks basic facilities")
    name = _clean_text(school.get("school_name")) or "This school"
    return f"{name}: " + "; ".join(reasons) + "."


class HeuristicRanker(CandidateRanker):
    """Deterministic local ranker used by default and in development."""

    name = "heuristic"

    def rank(self, request: RankingRequest) -> list[dict[str, Any]]:
        scored: list[tuple[int, int, dict[str, Any]]] = []
        for application in request.applications:
            school = application.get("school") or {}
            if not school.get("id"):
                continue
            features = {
                "resource": compute_resource_similarity(request.donation, application),
                "geography": compute_geography(request.donation, school),
                "priority": compute_priority(request.donation, application),
                "impact": compute_impact(application, school),
                "need": compute_need(school),
            }
            score = int(round(weighted_score(features) * 100))
            scored.append(
                (
                    score,
                    int(application["id"]),
                    {
                        "application_id": int(application["id"]),
                        "school_id": school["id"],
                        "school_name": school.get("school_name"),
                        "match_score": score,
                        "justification": _justify(features, school),
                    },
                )
            )

        scored.sort(key=lambda row: (-row[0], row[1]))
        ranked = []
        for rank, (_, _, candidate) in enumerate(scored, start=1):
            candidate["priority_rank"] = rank
            ranked.append(candidate)
        return ranked


__all__ = [
    "HeuristicRanker",
    "compute_resource_similarity",
    "compute_geography",
    "compute_priority",
    "compute_impact",
    "compute_need",
    "weighted_score",
]
