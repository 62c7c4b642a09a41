from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor

from ..analytics.store import record_event
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..sheets.cache import Row
from ..sheets.client import TabularStoreClient
from ..sheets.config import DEFAULT_SHEETS_CONFIG, SheetsConfig
from .candidates import select_candidates
from .models import (
    NoCandidatesOutcome,
    ProjectRequest,
    RecommendationResult,
    Vendor,
)
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)


class RecommendationOrchestrator:
    """
    fetch tables -> select candidates -> rank.

    ``DataSourceError`` from the store propagates to the caller. Ranking
    never fails outward: remote errors are absorbed by the fallback.
    """

    def __init__(
        self,
        store: TabularStoreClient,
        engine: ScoringEngine | None = None,
        config: SheetsConfig = DEFAULT_SHEETS_CONFIG,
    ) -> None:
        self.store = store
        self.engine = engine or ScoringEngine()
        self.config = config

    @classmethod
    def from_config(
        cls,
        sheets_config: SheetsConfig = DEFAULT_SHEETS_CONFIG,
        llm_config: LLMConfig = DEFAULT_LLM_CONFIG,
    ) -> RecommendationOrchestrator:
        return cls(
            TabularStoreClient(config=sheets_config),
            ScoringEngine(llm_config),
            sheets_config,
        )

    def _fetch_tables(self) -> tuple[list[Row], list[Row]]:
        # The two tables are independent, so fetch them side by side
        with ThreadPoolExecutor(max_workers=2) as pool:
            vendors = pool.submit(self.store.get_table, self.config.vendors_table)
            ratings = pool.submit(self.store.get_table, self.config.ratings_table)
            return vendors.result(), ratings.result()

    def recommend(
        self, request: ProjectRequest
    ) -> RecommendationResult | NoCandidatesOutcome:
        start_time = time.time()
        vendors, ratings = self._fetch_tables()

        candidates = select_candidates(vendors, ratings, request.service_category)
        if not candidates:
            self._record(request, start_time, total_candidates=0, source=None)
            return NoCandidatesOutcome(service_category=request.service_category)

        result = self.engine.rank(request, candidates)
        self._record(request, start_time, total_candidates=len(candidates), source=result.source)
        return result

    def list_vendors(self) -> list[Vendor]:
        return [Vendor.model_validate(row) for row in self.store.get_table(self.config.vendors_table)]

    def refresh_tables(self) -> dict[str, int]:
        return self.store.refresh(self.config.vendors_table, self.config.ratings_table)

    def _record(
        self,
        request: ProjectRequest,
        start_time: float,
        total_candidates: int,
        source: str | None,
    ) -> None:
        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        record_event("recommendation", {
            "project_title": request.project_title,
            "service_category": request.service_category.lower(),
            "total_candidates": total_candidates,
            "source": source,
            "response_time_ms": elapsed_ms,
        })
