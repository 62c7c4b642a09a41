from __future__ import annotations

import logging
from typing import Iterable, Mapping

import pandas as pd

from .models import EnrichedVendor, Rating, VendorStatus, parse_service_categories

logger = logging.getLogger(__name__)

MAX_RECENT_RATINGS = 3


def _frame(rows: Iterable[Mapping[str, str]], columns: list[str]) -> pd.DataFrame:
    df = pd.DataFrame.from_records(list(rows))
    for col in columns:
        if col not in df.columns:
            df[col] = ""
    return df.fillna("")


def _recent_ratings(ratings: Iterable[Mapping[str, str]]) -> dict[str, list[Rating]]:
    """Group ratings by vendor, newest first, keeping at most three per vendor."""
    df = _frame(ratings, ["vendor_id", "rating_date"])
    if df.empty:
        return {}

    # Unparseable or missing dates become NaT and sort after every real date
    df["_rating_date"] = pd.to_datetime(
        df["rating_date"], errors="coerce", utc=True, format="mixed"
    )
    df = df.sort_values(
        "_rating_date", ascending=False, na_position="last", kind="stable"
    )
    recent = df.groupby("vendor_id", sort=False).head(MAX_RECENT_RATINGS)

    grouped: dict[str, list[Rating]] = {}
    for record in recent.drop(columns="_rating_date").to_dict("records"):
        grouped.setdefault(str(record["vendor_id"]), []).append(
            Rating.model_validate(record)
        )
    return grouped


def select_candidates(
    vendors: Iterable[Mapping[str, str]],
    ratings: Iterable[Mapping[str, str]],
    service_category: str,
) -> list[EnrichedVendor]:
    """
    Return the active vendors offering ``service_category``, each enriched
    with its most recent ratings.

    The category must match one of the vendor's ``,``/``;``/``/``-separated
    tokens exactly after trimming and lower-casing. An empty list means no
    vendor qualified.
    """
    search_term = service_category.strip().lower()
    df = _frame(vendors, ["vendor_id", "status", "service_categories"])
    if df.empty:
        return []

    mask = (df["status"] == VendorStatus.active.value) & df["service_categories"].apply(
        lambda s: search_term in parse_service_categories(s)
    )
    relevant = df.loc[mask]
    if relevant.empty:
        logger.info("No active vendors offer %r", search_term)
        return []

    recent = _recent_ratings(ratings)
    candidates = [
        EnrichedVendor.model_validate(
            {**record, "recent_ratings": recent.get(str(record["vendor_id"]), [])}
        )
        for record in relevant.to_dict("records")
    ]
    logger.info("Selected %d candidate vendors for %r", len(candidates), search_term)
    return candidates
