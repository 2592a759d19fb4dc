"""
Ranker client for an external ranking service reached over HTTP.

The service receives ``{"donation": ..., "applications": [...]}`` and answers
with a JSON array of candidates, an object holding a ``matches`` array, or
text wrapping such an array. Every transport or decoding failure surfaces as
``UpstreamFailure``; structural validation happens in ``validate_ranking``.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from .errors import UpstreamFailure
from .ranker import CandidateRanker, RankingRequest, parse_ranker_text

DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpRanker(CandidateRanker):
    name = "http"

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not url:
            raise ValueError("HttpRanker requires a service URL.")
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def rank(self, request: RankingRequest) -> Any:
        try:
            response = self.session.post(
                self.url,
                json=request.as_payload(),
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            self.logger.warning(
                "Ranker request timed out",
                extra={"ranker_url": self.url, "donation_id": request.donation_id, "timeout": self.timeout},
            )
            raise UpstreamFailure(f"Ranker did not answer within {self.timeout:g}s.") from exc
        except requests.RequestException as exc:
            self.logger.error(
                "Ranker request failed",
                extra={"ranker_url": self.url, "donation_id": request.donation_id, "error": str(exc)},
            )
            raise UpstreamFailure(f"Ranker request failed: {exc}") from exc

        if response.status_code >= 400:
            self.logger.error(
                "Ranker returned an error status",
                extra={"ranker_url": self.url, "status_code": response.status_code, "body": response.text[:500]},
            )
            raise UpstreamFailure(f"Ranker returned HTTP {response.status_code}.")

        try:
            return response.json()
        except ValueError:
            return parse_ranker_text(response.text)


__all__ = ["HttpRanker", "DEFAULT_TIMEOUT_SECONDS"]
