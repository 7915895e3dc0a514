"""Unit tests for the language-model provider layer.

Tests cover:
- Parsing model output into score batches, discarding bad entries
- Prompt rendering with Jinja2 templates
- HTTP error mapping in the chat completions provider
- Provider factory selection from configuration
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.models import AppConfig
from jobmatch.matching.scorers.ai import build_request
from jobmatch.providers import get_provider
from jobmatch.providers.exceptions import ProviderConfigurationError, ProviderResponseError
from jobmatch.providers.openai_compat import ChatCompletionsProvider
from jobmatch.providers.prompts import PromptRenderer
from jobmatch.providers.schema import (
    DESCRIPTION_PREVIEW_CHARS,
    JobSummary,
    ProviderErrorResponse,
    ScoreBatchResponse,
    parse_score_content,
    provider_response_adapter,
)


@pytest.fixture
def scoring_request(make_user, make_job):
    jobs = [make_job(job_hash="job-a", title="Data Analyst"), make_job(job_hash="job-b", title="BI Developer")]
    return build_request(make_user(), jobs, max_tokens=2500, min_results=5)


@pytest.fixture
def provider():
    p = ChatCompletionsProvider(api_key="sk-test", base_url="https://llm.example.com/v1/")
    yield p
    p.close()


def _http_response(status_code=200, body=None, headers=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.reason = "Reason"
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


def _completion(content, total_tokens=900):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": total_tokens},
    }


class TestParseScoreContent:
    """Tests for parse_score_content."""

    def test_matches_object(self):
        """Test the documented {"matches": [...]} shape."""
        content = json.dumps(
            {"matches": [{"job_hash": "job-a", "match_score": 88, "match_reason": "Strong fit", "confidence": 0.9}]}
        )
        batch = parse_score_content(content)
        assert batch.scores[0].job_hash == "job-a"
        assert batch.scores[0].match_score == 88.0
        assert batch.discarded == 0

    def test_bare_list_in_code_fence(self):
        """Test a bare list wrapped in a Markdown code fence."""
        content = '```json\n[{"job_index": 2, "match_score": "75", "match_reason": "Good"}]\n```'
        batch = parse_score_content(content)
        assert batch.scores[0].job_index == 2
        assert batch.scores[0].match_score == 75.0

    def test_bad_entries_discarded_individually(self):
        """Test that entries without a job reference are discarded, others kept."""
        content = json.dumps(
            {
                "scores": [
                    {"match_score": 70, "match_reason": "No reference"},
                    {"job_hash": "job-b", "match_score": "high", "match_reason": "   "},
                    "not an object",
                ]
            }
        )
        batch = parse_score_content(content)
        assert batch.discarded == 2
        assert batch.scores[0].match_score is None
        assert batch.scores[0].match_reason is None

    @pytest.mark.parametrize("content", ["", "not json", '{"result": "ok"}'])
    def test_unusable_content(self, content):
        """Test that content without an entry list raises ProviderResponseError."""
        with pytest.raises(ProviderResponseError):
            parse_score_content(content)

    def test_response_union_discriminates_on_kind(self):
        """Test that the tagged union picks the right variant."""
        error = provider_response_adapter.validate_python({"kind": "error", "code": "timeout", "message": "slow"})
        batch = provider_response_adapter.validate_python({"kind": "score_batch", "scores": []})
        assert isinstance(error, ProviderErrorResponse)
        assert isinstance(batch, ScoreBatchResponse)


class TestBuildRequest:
    """Tests for the request summaries sent to the provider."""

    def test_indices_and_min_results(self, scoring_request):
        """Test 1-based indices and min_results capped by batch size."""
        assert [job.index for job in scoring_request.jobs] == [1, 2]
        assert scoring_request.min_results == 2
        assert scoring_request.user.languages_spoken == ["English"]

    def test_description_truncated(self):
        """Test that long descriptions are cut to a preview."""
        summary = JobSummary(
            index=1, job_hash="j", title="t", company="c", location="l", description="x" * (DESCRIPTION_PREVIEW_CHARS + 50)
        )
        assert summary.description.endswith("...")
        assert len(summary.description) == DESCRIPTION_PREVIEW_CHARS + 3


class TestPromptRenderer:
    """Tests for PromptRenderer."""

    def test_renders_system_and_user_messages(self, scoring_request):
        """Test that both messages are rendered with request data."""
        messages = PromptRenderer().render_messages(scoring_request)

        assert [m["role"] for m in messages] == ["system", "user"]
        assert '"matches"' in messages[0]["content"]
        user_content = messages[1]["content"]
        assert "job_hash=job-a" in user_content
        assert "[2] job_hash=job-b" in user_content
        assert "Target cities: London" in user_content
        assert "Score at least 2 of these jobs" in user_content

    def test_missing_template_raises_configuration_error(self, scoring_request):
        """Test that a missing template is a configuration error."""
        renderer = PromptRenderer(user_template="missing.j2")
        with pytest.raises(ProviderConfigurationError):
            renderer.render_messages(scoring_request)


class TestChatCompletionsProvider:
    """Tests for ChatCompletionsProvider."""

    def test_requires_api_key(self):
        """Test that a blank API key is rejected."""
        with pytest.raises(ProviderConfigurationError):
            ChatCompletionsProvider(api_key="  ")

    def test_endpoint_strips_trailing_slash(self, provider):
        """Test endpoint construction."""
        assert provider.endpoint == "https://llm.example.com/v1/chat/completions"

    def test_successful_call(self, provider, scoring_request):
        """Test payload, auth header and parsed response."""
        content = json.dumps({"matches": [{"job_hash": "job-a", "match_score": 81, "match_reason": "Python and SQL"}]})
        with patch.object(provider._session, "request", return_value=_http_response(body=_completion(content))) as mock:
            result = provider.score_batch(scoring_request, timeout=12.5)

        assert isinstance(result, ScoreBatchResponse)
        assert result.scores[0].job_hash == "job-a"
        assert result.tokens_used == 900

        kwargs = mock.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["timeout"] == 12.5
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"]["model"] == "gpt-4o-mini"
        assert kwargs["json"]["max_tokens"] == 2500
        assert kwargs["json"]["response_format"] == {"type": "json_object"}

    def test_rate_limited(self, provider, scoring_request):
        """Test that HTTP 429 maps to rate_limited with Retry-After."""
        response = _http_response(status_code=429, headers={"Retry-After": "7"})
        with patch.object(provider._session, "request", return_value=response):
            result = provider.score_batch(scoring_request, timeout=5)

        assert isinstance(result, ProviderErrorResponse)
        assert result.code == "rate_limited"
        assert result.retry_after == 7.0

    @pytest.mark.parametrize("status_code", [408, 504])
    def test_upstream_timeout_statuses(self, provider, scoring_request, status_code):
        """Test that 408 and 504 map to timeout."""
        with patch.object(provider._session, "request", return_value=_http_response(status_code=status_code)):
            assert provider.score_batch(scoring_request, timeout=5).code == "timeout"

    def test_client_timeout(self, provider, scoring_request):
        """Test that a requests timeout maps to timeout."""
        with patch.object(provider._session, "request", side_effect=requests.exceptions.ReadTimeout("slow")):
            assert provider.score_batch(scoring_request, timeout=5).code == "timeout"

    @pytest.mark.parametrize("status_code", [401, 500, 503])
    def test_http_errors_unavailable(self, provider, scoring_request, status_code):
        """Test that other error statuses map to unavailable."""
        with patch.object(provider._session, "request", return_value=_http_response(status_code=status_code)):
            assert provider.score_batch(scoring_request, timeout=5).code == "unavailable"

    def test_connection_error_unavailable(self, provider, scoring_request):
        """Test that connection failures map to unavailable."""
        with patch.object(provider._session, "request", side_effect=requests.exceptions.ConnectionError("refused")):
            assert provider.score_batch(scoring_request, timeout=5).code == "unavailable"

    @pytest.mark.parametrize(
        "response",
        [
            _http_response(json_error=True),
            _http_response(body={"choices": []}),
            _http_response(body=_completion("I think job-a is great")),
        ],
    )
    def test_malformed_bodies(self, provider, scoring_request, response):
        """Test that unparseable bodies map to malformed."""
        with patch.object(provider._session, "request", return_value=response):
            assert provider.score_batch(scoring_request, timeout=5).code == "malformed"


class TestGetProvider:
    """Tests for get_provider."""

    def test_disabled(self):
        """Test that a disabled AI section yields no provider."""
        config = AppConfig.model_validate({"ai": {"enabled": False}})
        assert get_provider(config, EnvironmentConfig(openai_api_key="sk-test")) is None

    def test_missing_credentials(self):
        """Test that no API key yields no provider."""
        assert get_provider(AppConfig(), EnvironmentConfig()) is None

    def test_environment_base_url_wins(self):
        """Test that OPENAI_BASE_URL overrides ai.base_url."""
        config = AppConfig.model_validate({"ai": {"model": "local-model", "base_url": "https://a.example.com/v1"}})
        env = EnvironmentConfig(openai_api_key="sk-test", openai_base_url="https://b.example.com/v1")

        provider = get_provider(config, env)
        try:
            assert isinstance(provider, ChatCompletionsProvider)
            assert provider.model == "local-model"
            assert provider.base_url == "https://b.example.com/v1"
        finally:
            provider.close()
