"""Unit tests for the LLM source adapter with a mocked LLM client."""

from unittest.mock import MagicMock

import pytest

from curation.models import ContentType, SourceRequest
from curation.models.generation import ExerciseDraft, GrammarRuleDraft, MeaningDraft
from curation.sources.llm_adapter import LLM_CONFIDENCE, LLMSourceAdapter
from curation.utils.llm_client import TokenUsage


@pytest.fixture
def mock_llm_client():
    client = MagicMock()
    client.last_usage = TokenUsage(prompt_tokens=120, completion_tokens=80, total_tokens=200)
    client.estimate_cost.return_value = 0.00156
    return client


class TestLLMSourceAdapter:
    """Test prompt building and content generation."""

    def test_supported_types(self):
        adapter = LLMSourceAdapter(MagicMock())

        assert adapter.can_handle(SourceRequest(content_type=ContentType.MEANING, language="EN"))
        assert adapter.can_handle(SourceRequest(content_type=ContentType.GRAMMAR, language="EN"))
        assert not adapter.can_handle(SourceRequest(content_type=ContentType.ORTHOGRAPHY, language="EN"))

    def test_generate_meaning(self, mock_llm_client):
        """Structured draft becomes the payload; usage becomes metadata."""
        mock_llm_client.generate.return_value = MeaningDraft(
            word="house", definition="a building for people to live in", part_of_speech="noun"
        )
        adapter = LLMSourceAdapter(mock_llm_client)

        content = adapter.generate(SourceRequest(content_type=ContentType.MEANING, language="EN", level="A1"))

        assert content.data["word"] == "house"
        assert content.data["part_of_speech"] == "noun"
        assert content.level == "A1"
        assert content.source_metadata.source_name == "llm"
        assert content.source_metadata.tokens == 200
        assert content.source_metadata.cost == pytest.approx(0.00156)
        assert content.source_metadata.confidence == LLM_CONFIDENCE

        kwargs = mock_llm_client.generate.call_args.kwargs
        assert kwargs["response_model"] is MeaningDraft
        assert "A1" in kwargs["prompt"]

    def test_generate_exercise_uses_exercise_model(self, mock_llm_client):
        mock_llm_client.generate.return_value = ExerciseDraft(
            prompt="I ___ to school.", options=["go", "goes", "going", "went"], correct_index=0
        )
        adapter = LLMSourceAdapter(mock_llm_client)

        content = adapter.generate(SourceRequest(content_type=ContentType.EXERCISE, language="EN", level="A2"))

        assert content.data["correct_index"] == 0
        assert mock_llm_client.generate.call_args.kwargs["response_model"] is ExerciseDraft

    def test_grammar_prompt_includes_category(self, mock_llm_client):
        mock_llm_client.generate.return_value = GrammarRuleDraft(
            title="Present simple", explanation="Habits and facts", examples=[{"correct": "I eat."}]
        )
        adapter = LLMSourceAdapter(mock_llm_client)
        request = SourceRequest(
            content_type=ContentType.GRAMMAR, language="IT", level="B1", metadata={"category": "verbs"}
        )

        adapter.generate(request)

        assert "verbs" in mock_llm_client.generate.call_args.kwargs["prompt"]

    def test_utterance_prompt_requires_word(self):
        adapter = LLMSourceAdapter(MagicMock())
        request = SourceRequest(content_type=ContentType.UTTERANCE, language="EN", level="A1")

        with pytest.raises(ValueError, match="metadata.word"):
            adapter.build_prompt(request)

    def test_utterance_prompt_mentions_word(self):
        adapter = LLMSourceAdapter(MagicMock())
        request = SourceRequest(
            content_type=ContentType.UTTERANCE, language="PT", level="A1", metadata={"word": "casa"}
        )

        assert '"casa"' in adapter.build_prompt(request)

    def test_generation_error_propagates(self, mock_llm_client):
        mock_llm_client.generate.side_effect = Exception("rate limited")
        adapter = LLMSourceAdapter(mock_llm_client)

        with pytest.raises(Exception, match="rate limited"):
            adapter.generate(SourceRequest(content_type=ContentType.MEANING, language="EN", level="A1"))

    def test_health_check_pings_client(self, mock_llm_client):
        mock_llm_client.ping.return_value = False
        assert LLMSourceAdapter(mock_llm_client).health_check() is False
        mock_llm_client.ping.assert_called_once()
