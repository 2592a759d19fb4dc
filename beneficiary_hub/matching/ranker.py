"""
Candidate ranker contract and boundary validation.

A ranker receives a donation snapshot plus the open applications (each with
its school's profile) and returns scored, ranked candidates. Its output is
untrusted: ``validate_ranking`` checks the whole response and either returns
frozen ``RankedCandidate`` rows or raises ``UpstreamFailure``. Nothing is
persisted before validation succeeds.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from .errors import UpstreamFailure

MIN_SCORE = 0
MAX_SCORE = 100

# Original wire format used "match_justification"; accept both.
_JUSTIFICATION_KEYS = ("justification", "match_justification")
_JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class RankingRequest:
    """Input handed to a ranker: donation snapshot and open applications with school context."""

    donation: Mapping[str, Any]
    applications: tuple[Mapping[str, Any], ...] = field(default=())

    @property
    def donation_id(self) -> Any:
        return self.donation.get("id")

    def application_schools(self) -> dict[int, int | None]:
        """Map application id -> school id for membership checks."""
        mapping: dict[int, int | None] = {}
        for application in self.applications:
            school = application.get("school") or {}
            mapping[int(application["id"])] = school.get("id")
        return mapping

    def as_payload(self) -> dict[str, Any]:
        return {"donation": dict(self.donation), "applications": [dict(app) for app in self.applications]}


@dataclass(frozen=True)
class RankedCandidate:
    application_id: int
    school_id: int
    match_score: int
    justification: str
    priority_rank: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "school_id": self.school_id,
            "match_score": self.match_score,
            "justification": self.justification,
            "priority_rank": self.priority_rank,
        }


class CandidateRanker(ABC):
    """External ranking collaborator. Output is advisory and may differ between calls."""

    name = "ranker"

    @abstractmethod
    def rank(self, request: RankingRequest) -> Any:
        """Return the raw (unvalidated) ranking for ``request``."""


def parse_ranker_text(text: str) -> Any:
    """
    Decode a textual ranker response.

    Accepts a JSON document, or free text wrapping a JSON array (as language
    model rankers tend to produce).
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        pass
    found = _JSON_ARRAY_PATTERN.search(text or "")
    if not found:
        raise UpstreamFailure("Could not find a JSON array in the ranker response.")
    try:
        return json.loads(found.group(0))
    except ValueError as exc:
        raise UpstreamFailure(f"Ranker response is not valid JSON: {exc}") from exc


def _unwrap(raw: Any) -> Sequence[Any]:
    if isinstance(raw, str):
        raw = parse_ranker_text(raw)
    if isinstance(raw, Mapping) and "matches" in raw:
        raw = raw["matches"]
    if not isinstance(raw, (list, tuple)):
        raise UpstreamFailure(f"Invalid ranker response: expected an array, got {type(raw).__name__}.")
    return raw


def _coerce_int(value: Any, field_name: str, index: int) -> int:
    if isinstance(value, bool):
        raise UpstreamFailure(f"Candidate {index}: {field_name} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise UpstreamFailure(f"Candidate {index}: {field_name} must be an integer.")


def _justification(item: Mapping[str, Any], index: int) -> str:
    for key in _JUSTIFICATION_KEYS:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    raise UpstreamFailure(f"Candidate {index}: justification must be a non-empty string.")


def validate_ranking(raw: Any, request: RankingRequest) -> list[RankedCandidate]:
    """
    Validate a raw ranker response against ``request``.

    Rules: every item names an application from the request and that
    application's school; scores are integers in [0, 100]; justifications are
    non-empty; priority ranks are positive integers with no duplicates; an
    application appears at most once. The result is ordered by rank and
    renumbered 1..n so the stored batch is a contiguous total order.

    Raises:
        UpstreamFailure: on any structural mismatch; the whole batch is rejected
    """
    items = _unwrap(raw)
    if not items:
        raise UpstreamFailure("Ranker returned no candidates.")

    schools_by_application = request.application_schools()
    seen_applications: set[int] = set()
    seen_ranks: set[int] = set()
    parsed: list[RankedCandidate] = []

    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise UpstreamFailure(f"Candidate {index}: expected an object.")

        application_id = _coerce_int(item.get("application_id"), "application_id", index)
        if application_id not in schools_by_application:
            raise UpstreamFailure(f"Candidate {index}: application {application_id} was not offered to the ranker.")
        if application_id in seen_applications:
            raise UpstreamFailure(f"Candidate {index}: application {application_id} is ranked twice.")

        school_id = _coerce_int(item.get("school_id"), "school_id", index)
        if school_id != schools_by_application[application_id]:
            raise UpstreamFailure(
                f"Candidate {index}: school {school_id} does not own application {application_id}."
            )

        match_score = _coerce_int(item.get("match_score"), "match_score", index)
        if not MIN_SCORE <= match_score <= MAX_SCORE:
            raise UpstreamFailure(f"Candidate {index}: match_score {match_score} is outside 0-100.")

        priority_rank = _coerce_int(item.get("priority_rank"), "priority_rank", index)
        if priority_rank < 1:
            raise UpstreamFailure(f"Candidate {index}: priority_rank must be at least 1.")
        if priority_rank in seen_ranks:
            raise UpstreamFailure(f"Candidate {index}: priority_rank {priority_rank} is duplicated.")

        seen_applications.add(application_id)
        seen_ranks.add(priority_rank)
        parsed.append(
            RankedCandidate(
                application_id=application_id,
                school_id=school_id,
                match_score=match_score,
                justification=_justification(item, index),
                priority_rank=priority_rank,
            )
        )

    parsed.sort(key=lambda candidate: candidate.priority_rank)
    return [
        RankedCandidate(
            application_id=candidate.application_id,
            school_id=candidate.school_id,
            match_score=candidate.match_score,
            justification=candidate.justification,
            priority_rank=position,
        )
        for position, candidate in enumerate(parsed, start=1)
    ]


def build_request(donation: Mapping[str, Any], applications: Iterable[Mapping[str, Any]]) -> RankingRequest:
    return RankingRequest(donation=dict(donation), applications=tuple(dict(app) for app in applications))


__all__ = [
    "CandidateRanker",
    "RankingRequest",
    "RankedCandidate",
    "build_request",
    "parse_ranker_text",
    "validate_ranking",
]
