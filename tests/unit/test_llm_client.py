"""Unit tests for LLM client with mocked API responses."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from pydantic import BaseModel, Field

from curation.utils.llm_client import LLMClient, TokenUsage


class MockResponse(BaseModel):
    """Mock response model for testing."""

    text: str = Field(..., description="Response text")


def response_with_usage(prompt=100, completion=50, cached=20):
    raw = SimpleNamespace(
        usage=SimpleNamespace(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=prompt + completion,
            prompt_tokens_details=SimpleNamespace(cached_tokens=cached),
        )
    )
    return SimpleNamespace(text="hello", _raw_response=raw)


class TestLLMClient:
    """Test LLMClient with mocked API responses."""

    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_client_initialization(self, mock_from_openai, mock_openai):
        client = LLMClient(api_key="test-key", model="gpt-4o")

        assert client.model == "gpt-4o"
        assert client.max_retries == 3
        mock_openai.assert_called_once_with(api_key="test-key")
        mock_from_openai.assert_called_once_with(mock_openai.return_value)

    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_successful_generate(self, mock_from_openai, mock_openai):
        mock_instructor_client = MagicMock()
        mock_from_openai.return_value = mock_instructor_client
        mock_instructor_client.chat.completions.create.return_value = MockResponse(text="Hello world")

        client = LLMClient(api_key="test-key")
        result = client.generate(prompt="Say hello", response_model=MockResponse, system_prompt="Be brief")

        assert result.text == "Hello world"
        kwargs = mock_instructor_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_model"] is MockResponse
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief"}
        assert kwargs["messages"][1] == {"role": "user", "content": "Say hello"}

    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_usage_tracking(self, mock_from_openai, mock_openai):
        """Usage from the raw response feeds last_usage and the running total."""
        mock_instructor_client = MagicMock()
        mock_from_openai.return_value = mock_instructor_client
        mock_instructor_client.chat.completions.create.return_value = response_with_usage()

        client = LLMClient(api_key="test-key")
        client.generate(prompt="a", response_model=MockResponse)
        client.generate(prompt="b", response_model=MockResponse)

        assert client.last_usage.total_tokens == 150
        assert client.last_usage.cached_tokens == 20
        assert client.total_usage.total_tokens == 300

        client.reset_usage()
        assert client.total_usage.total_tokens == 0

    @patch("curation.utils.llm_client.time.sleep")
    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_retry_then_success(self, mock_from_openai, mock_openai, mock_sleep):
        mock_instructor_client = MagicMock()
        mock_from_openai.return_value = mock_instructor_client
        mock_instructor_client.chat.completions.create.side_effect = [
            Exception("API error"),
            MockResponse(text="Success"),
        ]

        client = LLMClient(api_key="test-key", base_delay=1.0)
        result = client.generate(prompt="Test", response_model=MockResponse)

        assert result.text == "Success"
        assert mock_instructor_client.chat.completions.create.call_count == 2
        mock_sleep.assert_called_once_with(1.0)

    @patch("curation.utils.llm_client.time.sleep")
    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_all_retries_fail(self, mock_from_openai, mock_openai, mock_sleep):
        mock_instructor_client = MagicMock()
        mock_from_openai.return_value = mock_instructor_client
        mock_instructor_client.chat.completions.create.side_effect = Exception("Persistent error")

        client = LLMClient(api_key="test-key", max_retries=3)

        with pytest.raises(Exception, match="Failed to generate structured response after 3 attempts"):
            client.generate(prompt="Test", response_model=MockResponse)

        assert mock_sleep.call_count == 2

    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_backoff_delay_is_capped(self, mock_from_openai, mock_openai):
        client = LLMClient(api_key="test-key", base_delay=1.0, max_delay=5.0)

        assert client._calculate_backoff_delay(1) == 1.0
        assert client._calculate_backoff_delay(3) == 4.0
        assert client._calculate_backoff_delay(10) == 5.0

    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_estimate_cost(self, mock_from_openai, mock_openai):
        client = LLMClient(api_key="test-key", model="claude-sonnet-4.5")
        usage = TokenUsage(prompt_tokens=1_000_000, completion_tokens=1_000_000, total_tokens=2_000_000)

        assert client.estimate_cost(usage) == pytest.approx(18.0)

    @patch("curation.utils.llm_client.OpenAI")
    @patch("curation.utils.llm_client.instructor.from_openai")
    def test_ping(self, mock_from_openai, mock_openai):
        client = LLMClient(api_key="test-key", model="gpt-4o-mini")
        assert client.ping() is True
        mock_openai.return_value.models.retrieve.assert_called_once_with("gpt-4o-mini")

        mock_openai.return_value.models.retrieve.side_effect = Exception("401 Unauthorized")
        assert client.ping() is False
