from __future__ import annotations

from collections import Counter
from typing import Any


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    requests = [e for e in events if e["type"] == "recommendation"]
    total = len(requests)

    # Average response time
    times = [r["response_time_ms"] for r in requests if "response_time_ms" in r]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    # Top requested categories
    category_counter: Counter[str] = Counter()
    for r in requests:
        category_counter[r.get("service_category", "unknown")] += 1
    top_categories = [{"name": n, "count": c} for n, c in category_counter.most_common(10)]

    # Which strategy answered
    source_counter: Counter[str] = Counter()
    for r in requests:
        if r.get("source"):
            source_counter[r["source"]] += 1

    no_candidates = sum(1 for r in requests if r.get("total_candidates", 0) == 0)

    return {
        "total_requests": total,
        "avg_response_time_ms": avg_time,
        "top_categories": top_categories,
        "source_usage": dict(source_counter),
        "no_candidates": {
            "count": no_candidates,
            "rate": round(no_candidates / total * 100, 1) if total else 0.0,
        },
    }
