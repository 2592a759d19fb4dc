"""Tests for the local heuristic ranker"""

import pytest

from beneficiary_hub.matching.heuristic import (
    HeuristicRanker,
    compute_geography,
    compute_impact,
    compute_need,
    compute_priority,
    compute_resource_similarity,
    weighted_score,
)
from beneficiary_hub.matching.ranker import build_request, validate_ranking

DONATION = {
    "id": 1,
    "title": "Library books",
    "donation_type": "books",
    "description": "Story books for young readers",
    "items": [{"name": "story books"}],
    "city": "Cape Town",
    "province": "Western Cape",
    "delivery_available": False,
    "urgency_level": "normal",
}


def _application(app_id, school_id, title, resources, province, **extra):
    return {
        "id": app_id,
        "application_title": title,
        "application_type": extra.pop("application_type", None),
        "priority_level": extra.pop("priority_level", "medium"),
        "resources_needed": resources,
        "beneficiaries_count": extra.pop("beneficiaries_count", 100),
        "school": {
            "id": school_id,
            "school_name": f"School {school_id}",
            "province": province,
            "district": extra.pop("district", None),
            "total_students": 300,
            "has_electricity": True,
            "has_running_water": True,
            "has_library": False,
        },
    }


class TestFeatures:
    def test_resource_similarity_prefers_related_text(self):
        books = _application(1, 1, "Books for reading corner", ["story books"], "Western Cape")
        laptops = _application(2, 2, "Computer lab", ["laptops"], "Western Cape")
        assert compute_resource_similarity(DONATION, books) > compute_resource_similarity(DONATION, laptops)

    def test_resource_similarity_empty_text(self):
        assert compute_resource_similarity({}, {"application_title": "x"}) == 0.0

    def test_geography(self):
        same_city = {"province": "Western Cape", "district": "Cape Town"}
        same_province = {"province": "western cape", "district": "George"}
        elsewhere = {"province": "Gauteng"}
        assert compute_geography(DONATION, same_city) == 1.0
        assert compute_geography(DONATION, same_province) == 0.8
        assert compute_geography(DONATION, elsewhere) == 0.0
        assert compute_geography({**DONATION, "delivery_available": True}, elsewhere) == 0.4

    def test_priority_and_urgency(self):
        assert compute_priority(DONATION, {"priority_level": "critical"}) == 1.0
        assert compute_priority(DONATION, {"priority_level": "low"}) == 0.25
        boosted = compute_priority({"urgency_level": "urgent"}, {"priority_level": "medium"})
        assert boosted == pytest.approx(0.6)

    def test_impact_is_log_scaled_and_capped(self):
        assert compute_impact({"beneficiaries_count": 0}, {}) == 0.0
        assert compute_impact({"beneficiaries_count": 5000}, {}) == 1.0
        assert compute_impact({}, {"total_students": 99}) == pytest.approx(2 / 3)

    def test_need_counts_missing_facilities(self):
        assert compute_need({}) == 1.0
        assert compute_need({"has_electricity": True, "has_running_water": True, "has_library": True}) == 0.0

    def test_weighted_score_is_clamped(self):
        assert weighted_score({}) == 0.0
        full = {"resource": 2, "geography": 1, "priority": 1, "impact": 1, "need": 1}
        assert weighted_score(full) == pytest.approx(1.0)


class TestHeuristicRanker:
    def test_output_passes_validation(self):
        request = build_request(
            DONATION,
            [
                _application(10, 100, "Computer lab", ["laptops"], "Gauteng"),
                _application(11, 101, "Story books", ["story books"], "Western Cape", district="Cape Town"),
            ],
        )
        candidates = validate_ranking(HeuristicRanker().rank(request), request)

        assert [c.application_id for c in candidates] == [11, 10]
        assert candidates[0].match_score > candidates[1].match_score
        assert all(0 <= c.match_score <= 100 for c in candidates)
        assert "School 101" in candidates[0].justification

    def test_ties_are_broken_by_application_id(self):
        request = build_request(
            DONATION,
            [
                _application(21, 200, "Same", ["story books"], "Western Cape"),
                _application(20, 201, "Same", ["story books"], "Western Cape"),
            ],
        )
        ranked = HeuristicRanker().rank(request)
        assert [item["application_id"] for item in ranked] == [20, 21]
        assert [item["priority_rank"] for item in ranked] == [1, 2]

    def test_applications_without_school_are_skipped(self):
        orphan = {"id": 30, "application_title": "Orphan", "school": None}
        request = build_request(DONATION, [orphan])
        assert HeuristicRanker().rank(request) == []
