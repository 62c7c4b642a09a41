from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from groq import Groq, GroqError

from ..recommendations.models import EnrichedVendor, ProjectRequest, Rating
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)


class RankingTransportError(Exception):
    """The ranking model could not be reached or returned unusable output."""


RESPONSE_FORMAT = """\
{
  "recommendations": [
    {
      "rank": 1,
      "vendorId": "vendor_id_here",
      "vendorName": "vendor_name_here",
      "matchScore": 95,
      "strengths": ["list of key strengths"],
      "concerns": ["list of potential concerns"],
      "recommendation": "A brief sentence justifying the rank."
    }
  ],
  "explanation": "A 2-3 sentence summary of your overall ranking logic and the key decision factors.",
  "budgetAnalysis": "Brief analysis of budget compatibility if data is available.",
  "riskFactors": "Any potential risks or considerations for the top recommended vendors."
}"""

INSTRUCTIONS = """\
1. Analyze all vendors against the project requirements.
2. Prioritize factors in this order:
   a. **Service Category Match:** This is the most critical factor.
   b. **Keyword Relevance:** Analyze the vendor's "Notes" and "Recent Project Feedback" \
for keywords matching the project description. This is the second most important \
factor, especially if ratings are similar or absent.
   c. **Recent Feedback:** Give more weight to detailed recent feedback than the \
overall average rating. Look for patterns in strengths and concerns.
   d. **Overall Rating and Experience:** Use this as a supporting factor.
3. Return every vendor listed above exactly once. "matchScore" is an integer \
from 0 to 100, "strengths" and "concerns" are lists of strings.
4. Provide your response in this EXACT JSON format:"""


def _score(value: float | None) -> str:
    return "N/A" if value is None else f"{value:g}"


def _format_rating(rating: Rating) -> str:
    on_time = "Yes" if rating.project_on_time else "No"
    return (
        f"    - Success: {_score(rating.project_success_rating)}/5, "
        f"Quality: {_score(rating.vendor_quality_rating)}/5, "
        f"Comm: {_score(rating.vendor_communication_rating)}/5. "
        f"On Time: {on_time}. "
        f'Strengths: "{rating.what_went_well or "N/A"}"'
    )


def _format_vendor(vendor: EnrichedVendor) -> str:
    lines = [
        f"- Vendor ID: {vendor.vendor_id}",
        f"  Name: {vendor.vendor_name}",
        f"  Services: {vendor.service_categories}",
        f"  Rating: {vendor.avg_overall_rating:g}/5 ({vendor.total_projects} projects)",
        f"  Notes: {vendor.vendor_notes or 'No notes provided.'}",
    ]
    if vendor.recent_ratings:
        lines.append("  Recent Project Feedback:")
        lines.extend(_format_rating(r) for r in vendor.recent_ratings)
    return "\n".join(lines)


def build_recommendation_prompt(
    request: ProjectRequest,
    candidates: Sequence[EnrichedVendor],
) -> str:
    vendor_summaries = "\n\n".join(_format_vendor(v) for v in candidates)
    return (
        "You are a vendor selection expert. Your task is to rank vendors for a "
        "project based on the provided details.\n\n"
        "PROJECT REQUIREMENTS:\n"
        f"- Title: {request.project_title}\n"
        f"- Service Category: {request.service_category}\n"
        f"- Description & Key Skills: {request.project_description}\n\n"
        "CANDIDATE VENDORS:\n"
        f"{vendor_summaries}\n\n"
        "INSTRUCTIONS:\n"
        f"{INSTRUCTIONS}\n"
        f"{RESPONSE_FORMAT}"
    )


def call_ranking_model(
    prompt: str,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> dict[str, Any]:
    """
    Send ``prompt`` to the Groq chat completions API in JSON mode.

    Makes a single attempt bounded by ``config.timeout``. Returns the decoded
    JSON object; raises ``RankingTransportError`` on API errors, timeouts,
    empty content or content that is not a JSON object.
    """
    if not config.is_configured:
        raise RankingTransportError("Groq API key is not configured")

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout, max_retries=0)
        response = client.chat.completions.create(
            model=config.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            response_format={"type": "json_object"},
        )
    except GroqError as exc:
        raise RankingTransportError(f"Groq API call failed: {exc}") from exc

    try:
        content = response.choices[0].message.content or ""
        parsed = json.loads(content)
    except (IndexError, AttributeError, ValueError) as exc:
        raise RankingTransportError("Groq returned a malformed completion") from exc

    if not isinstance(parsed, dict):
        raise RankingTransportError("Groq completion is not a JSON object")

    logger.debug("Groq ranking call succeeded (model=%s)", config.model)
    return parsed
