import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from groq import APIConnectionError

from vendormatch.llm.config import LLMConfig
from vendormatch.llm.groq_client import (
    RankingTransportError,
    build_recommendation_prompt,
    call_ranking_model,
)
from vendormatch.recommendations.models import EnrichedVendor, ProjectRequest, Rating

SAMPLE_REQUEST = ProjectRequest(
    project_title="Spring campaign",
    service_category="seo",
    project_description="Technical SEO audit for an online store",
)

SAMPLE_CANDIDATES = [
    EnrichedVendor(
        vendor_id="VEN-0001",
        vendor_name="Acme SEO",
        service_categories="SEO, Content",
        status="Active",
        avg_overall_rating="4.5",
        total_projects="12",
        vendor_notes="Technical audits for e-commerce",
        recent_ratings=[
            Rating(
                rating_id="R1",
                vendor_id="VEN-0001",
                rating_date="2024-03-01",
                project_success_rating="5",
                vendor_quality_rating="4",
                vendor_communication_rating="4.5",
                project_on_time="TRUE",
                what_went_well="Clear weekly reports",
            ),
            Rating(rating_id="R2", vendor_id="VEN-0001", project_on_time="FALSE"),
        ],
    ),
    EnrichedVendor(
        vendor_id="VEN-0002",
        vendor_name="Beta Words",
        service_categories="SEO",
        status="Active",
        avg_overall_rating="3",
        total_projects="2",
    ),
]

ENABLED_CONFIG = LLMConfig(api_key="test-key", enabled=True)
DISABLED_CONFIG = LLMConfig(api_key="test-key", enabled=False)


def _mock_groq_response(content: str | None) -> MagicMock:
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


# ── Prompt ───────────────────────────────────────────────────────────────


def test_prompt_embeds_project_details():
    prompt = build_recommendation_prompt(SAMPLE_REQUEST, SAMPLE_CANDIDATES)

    assert "- Title: Spring campaign" in prompt
    assert "- Service Category: seo" in prompt
    assert "- Description & Key Skills: Technical SEO audit for an online store" in prompt


def test_prompt_embeds_every_vendor_and_feedback():
    prompt = build_recommendation_prompt(SAMPLE_REQUEST, SAMPLE_CANDIDATES)

    assert "- Vendor ID: VEN-0001" in prompt
    assert "  Services: SEO, Content" in prompt
    assert "  Rating: 4.5/5 (12 projects)" in prompt
    assert "  Notes: Technical audits for e-commerce" in prompt
    assert "  Recent Project Feedback:" in prompt
    assert (
        '    - Success: 5/5, Quality: 4/5, Comm: 4.5/5. On Time: Yes. '
        'Strengths: "Clear weekly reports"'
    ) in prompt
    assert 'Success: N/A/5, Quality: N/A/5, Comm: N/A/5. On Time: No. Strengths: "N/A"' in prompt

    assert "- Vendor ID: VEN-0002" in prompt
    assert "  Notes: No notes provided." in prompt


def test_prompt_lists_priorities_and_response_shape():
    prompt = build_recommendation_prompt(SAMPLE_REQUEST, SAMPLE_CANDIDATES)

    assert prompt.index("Service Category Match") < prompt.index("Keyword Relevance")
    assert prompt.index("Keyword Relevance") < prompt.index("Recent Feedback:")
    assert prompt.index("Recent Feedback:") < prompt.index("Overall Rating and Experience")
    assert "exactly once" in prompt
    for key in ('"recommendations"', '"matchScore"', '"strengths"', '"concerns"', '"explanation"'):
        assert key in prompt


# ── Groq call ───────────────────────────────────────────────────────────


@patch("vendormatch.llm.groq_client.Groq")
def test_call_ranking_model_returns_parsed_json(mock_groq_cls):
    payload = {"recommendations": [{"vendorId": "VEN-0001"}], "explanation": "ok"}
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        json.dumps(payload)
    )

    result = call_ranking_model("prompt text", config=ENABLED_CONFIG)

    assert result == payload
    mock_groq_cls.assert_called_once_with(api_key="test-key", timeout=ENABLED_CONFIG.timeout, max_retries=0)
    kwargs = mock_groq_cls.return_value.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "prompt text"}]
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0.3


@patch("vendormatch.llm.groq_client.Groq")
def test_call_ranking_model_maps_api_errors(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.side_effect = APIConnectionError(
        request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    )

    with pytest.raises(RankingTransportError):
        call_ranking_model("prompt", config=ENABLED_CONFIG)


@patch("vendormatch.llm.groq_client.Groq")
def test_call_ranking_model_rejects_bad_json(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("not valid json{{{")

    with pytest.raises(RankingTransportError):
        call_ranking_model("prompt", config=ENABLED_CONFIG)


@patch("vendormatch.llm.groq_client.Groq")
def test_call_ranking_model_rejects_empty_content(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(None)

    with pytest.raises(RankingTransportError):
        call_ranking_model("prompt", config=ENABLED_CONFIG)


@patch("vendormatch.llm.groq_client.Groq")
def test_call_ranking_model_rejects_non_object(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("[1, 2]")

    with pytest.raises(RankingTransportError):
        call_ranking_model("prompt", config=ENABLED_CONFIG)


@patch("vendormatch.llm.groq_client.Groq")
def test_call_ranking_model_disabled(mock_groq_cls):
    with pytest.raises(RankingTransportError):
        call_ranking_model("prompt", config=DISABLED_CONFIG)
    mock_groq_cls.assert_not_called()


def test_config_is_configured():
    assert ENABLED_CONFIG.is_configured
    assert not DISABLED_CONFIG.is_configured
    assert not LLMConfig(api_key="", enabled=True).is_configured
