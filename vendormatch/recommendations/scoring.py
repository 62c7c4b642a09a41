from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable, Protocol, Sequence

from pydantic import ValidationError

from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import (
    RankingTransportError,
    build_recommendation_prompt,
    call_ranking_model,
)
from .models import (
    EnrichedVendor,
    ProjectRequest,
    RecommendationResult,
    VendorRecommendation,
)

logger = logging.getLogger(__name__)

REMOTE_SOURCE = "RemoteModel"
FALLBACK_SOURCE = "Fallback Algorithm"
FALLBACK_EXPLANATION = (
    "Vendors ranked by a weighted algorithm considering service match, "
    "keyword relevance in notes, experience, and ratings."
)

WEIGHTS = {"service_match": 0.40, "notes_match": 0.30, "rating": 0.15, "experience": 0.15}

STOP_WORDS = frozenset({"the", "a", "an", "is", "are", "in", "on", "for", "with", "and", "to", "of"})
_PUNCTUATION = re.compile(r"[^\w\s]")


class RankingStrategy(Protocol):
    def rank(
        self, request: ProjectRequest, candidates: Sequence[EnrichedVendor]
    ) -> RecommendationResult: ...


def extract_keywords(text: str | None) -> list[str]:
    """Lower-cased, punctuation-free words longer than two letters, minus stop words, de-duplicated."""
    if not text:
        return []
    words = _PUNCTUATION.sub("", text.lower()).split()
    return list(dict.fromkeys(w for w in words if len(w) > 2 and w not in STOP_WORDS))


def _recommendation_label(score: float) -> str:
    if score >= 70:
        return "Strong recommendation"
    if score >= 50:
        return "Good fit"
    return "Consider with caution"


def _match_score(value: float) -> int:
    # Half rounds up; clamped for out-of-range sheet data
    return max(0, min(100, int(math.floor(value + 0.5))))


# ── Local heuristic ─────────────────────────────────────────────────────


class LocalHeuristicStrategy:
    """
    Deterministic weighted scoring.

    score = 0.40 * service match + 0.30 * notes keyword overlap
            + 0.15 * rating + 0.15 * experience, each on a 0-100 scale.
    """

    source = FALLBACK_SOURCE

    def __init__(self, weights: dict[str, float] | None = None) -> None:
        self.weights = weights or WEIGHTS

    def score_vendor(
        self,
        vendor: EnrichedVendor,
        requested_category: str,
        project_keywords: list[str],
    ) -> dict[str, Any]:
        w = self.weights

        # Comma-only split, unlike candidate selection
        services = [s.strip() for s in vendor.service_categories.lower().split(",")]
        service_match = 100.0 if requested_category.lower() in services else 0.0

        vendor_keywords = set(extract_keywords(vendor.vendor_notes))
        if project_keywords:
            matched = sum(1 for k in project_keywords if k in vendor_keywords)
            notes_match = matched / len(project_keywords) * 100
        else:
            notes_match = 0.0

        rating_score = vendor.avg_overall_rating * 20
        experience_score = min(100, vendor.total_projects * 5)

        score = (
            w["service_match"] * service_match
            + w["notes_match"] * notes_match
            + w["rating"] * rating_score
            + w["experience"] * experience_score
        )

        strengths = []
        if service_match > 0:
            strengths.append("Strong service match")
        if notes_match > 50:
            strengths.append("Relevant skills in notes")
        concerns = []
        if notes_match < 20 and project_keywords:
            concerns.append("Lacks specific skills")

        return {
            "score": score,
            "service_match": service_match,
            "notes_match": notes_match,
            "strengths": strengths or ["General fit"],
            "concerns": concerns,
        }

    def rank(
        self, request: ProjectRequest, candidates: Sequence[EnrichedVendor]
    ) -> RecommendationResult:
        project_keywords = extract_keywords(request.project_description)
        scored = [
            (vendor, self.score_vendor(vendor, request.service_category, project_keywords))
            for vendor in candidates
        ]
        # sorted() is stable, so equal scores keep their input order
        scored = sorted(scored, key=lambda item: item[1]["score"], reverse=True)

        recommendations = [
            VendorRecommendation(
                rank=position,
                vendor_id=vendor.vendor_id,
                vendor_name=vendor.vendor_name,
                match_score=_match_score(result["score"]),
                strengths=result["strengths"],
                concerns=result["concerns"],
                recommendation=_recommendation_label(result["score"]),
            )
            for position, (vendor, result) in enumerate(scored, start=1)
        ]
        return RecommendationResult(
            recommendations=recommendations,
            explanation=FALLBACK_EXPLANATION,
            source=self.source,
        )


# ── Remote model ────────────────────────────────────────────────────────


class RemoteRankingStrategy:
    """Delegate ranking to the Groq-hosted model and validate its answer."""

    source = REMOTE_SOURCE

    def __init__(
        self,
        config: LLMConfig = DEFAULT_LLM_CONFIG,
        ranking_model: Callable[[str], dict[str, Any]] | None = None,
    ) -> None:
        self.config = config
        self._call = ranking_model or (lambda prompt: call_ranking_model(prompt, config=config))

    def rank(
        self, request: ProjectRequest, candidates: Sequence[EnrichedVendor]
    ) -> RecommendationResult:
        prompt = build_recommendation_prompt(request, candidates)
        payload = self._call(prompt)
        try:
            result = RecommendationResult.model_validate(payload)
        except ValidationError as exc:
            raise RankingTransportError("Ranking payload failed validation") from exc
        return self._normalise(result, candidates)

    def _normalise(
        self, result: RecommendationResult, candidates: Sequence[EnrichedVendor]
    ) -> RecommendationResult:
        """Require each candidate exactly once, then order by score and renumber ranks."""
        by_id = {v.vendor_id: v for v in candidates}
        returned = [r.vendor_id for r in result.recommendations]
        if len(returned) != len(set(returned)) or set(returned) != set(by_id):
            raise RankingTransportError(
                f"Ranking payload does not cover the {len(by_id)} candidates exactly once"
            )

        ordered = sorted(result.recommendations, key=lambda r: r.rank)
        ordered = sorted(ordered, key=lambda r: r.match_score, reverse=True)
        recommendations = [
            r.model_copy(update={"rank": position, "vendor_name": by_id[r.vendor_id].vendor_name})
            for position, r in enumerate(ordered, start=1)
        ]
        return result.model_copy(
            update={"recommendations": recommendations, "source": self.source}
        )


class FallbackRankingStrategy:
    """Use ``primary``; on ``RankingTransportError`` answer with ``fallback`` instead."""

    def __init__(self, primary: RankingStrategy, fallback: RankingStrategy) -> None:
        self.primary = primary
        self.fallback = fallback

    def rank(
        self, request: ProjectRequest, candidates: Sequence[EnrichedVendor]
    ) -> RecommendationResult:
        try:
            return self.primary.rank(request, candidates)
        except RankingTransportError:
            logger.warning(
                "Remote ranking failed, falling back to heuristic ranking", exc_info=True
            )
            return self.fallback.rank(request, candidates)


class ScoringEngine:
    """Pick the ranking strategy for a request and run it."""

    def __init__(
        self,
        config: LLMConfig = DEFAULT_LLM_CONFIG,
        ranking_model: Callable[[str], dict[str, Any]] | None = None,
    ) -> None:
        self.config = config
        self.local = LocalHeuristicStrategy()
        self.remote = RemoteRankingStrategy(config, ranking_model=ranking_model)

    def select_strategy(self, candidates: Sequence[EnrichedVendor]) -> RankingStrategy:
        if self.config.is_configured and candidates:
            return FallbackRankingStrategy(self.remote, self.local)
        return self.local

    def rank(
        self, request: ProjectRequest, candidates: Sequence[EnrichedVendor]
    ) -> RecommendationResult:
        strategy = self.select_strategy(candidates)
        logger.info(
            "Ranking %d vendors with %s", len(candidates), type(strategy).__name__
        )
        return strategy.rank(request, candidates)
