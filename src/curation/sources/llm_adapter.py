"""LLM-backed generation for meanings, utterances, grammar rules and exercises."""

import logging
from typing import Dict, Tuple, Type

from pydantic import BaseModel

from curation.models import ContentType, GeneratedContent, SourceMetadata, SourceRequest
from curation.models.generation import ExerciseDraft, GrammarRuleDraft, MeaningDraft, UtteranceDraft
from curation.prompts.generation_prompts import (
    EXERCISE_PROMPT_TEMPLATE,
    GRAMMAR_PROMPT_TEMPLATE,
    MEANING_PROMPT_TEMPLATE,
    SYSTEM_PROMPT,
    UTTERANCE_PROMPT_TEMPLATE,
)
from curation.sources.base import SourceAdapter
from curation.utils.llm_client import LLMClient

logger = logging.getLogger(__name__)

# Confidence reported for every LLM payload
LLM_CONFIDENCE = 0.85

RESPONSE_MODELS: Dict[ContentType, Tuple[Type[BaseModel], str]] = {
    ContentType.MEANING: (MeaningDraft, MEANING_PROMPT_TEMPLATE),
    ContentType.UTTERANCE: (UtteranceDraft, UTTERANCE_PROMPT_TEMPLATE),
    ContentType.GRAMMAR: (GrammarRuleDraft, GRAMMAR_PROMPT_TEMPLATE),
    ContentType.EXERCISE: (ExerciseDraft, EXERCISE_PROMPT_TEMPLATE),
}


class LLMSourceAdapter(SourceAdapter):
    """Generates one content payload per request through ``LLMClient``.

    Args:
        llm_client: Configured client; its retries cover transient API errors
        temperature: Sampling temperature for generation (default: 0.8)
    """

    name = "llm"
    supported_types = frozenset(RESPONSE_MODELS)

    def __init__(self, llm_client: LLMClient, temperature: float = 0.8):
        self.llm_client = llm_client
        self.temperature = temperature

    def generate(self, request: SourceRequest) -> GeneratedContent:
        if request.content_type not in RESPONSE_MODELS:
            raise ValueError(f"Unsupported content type: {request.content_type.value}")

        response_model, _ = RESPONSE_MODELS[request.content_type]
        prompt = self.build_prompt(request)

        logger.debug(
            "Generating content via LLM",
            extra={"content_type": request.content_type.value, "language": request.language},
        )
        draft = self.llm_client.generate(
            prompt=prompt,
            response_model=response_model,
            temperature=self.temperature,
            system_prompt=SYSTEM_PROMPT,
        )

        usage = self.llm_client.last_usage
        return GeneratedContent(
            content_type=request.content_type,
            language=request.language,
            level=request.level,
            data=draft.model_dump(mode="json"),
            source_metadata=SourceMetadata(
                source_name=self.name,
                tokens=usage.total_tokens,
                cost=self.llm_client.estimate_cost(usage),
                confidence=LLM_CONFIDENCE,
            ),
        )

    def build_prompt(self, request: SourceRequest) -> str:
        _, template = RESPONSE_MODELS[request.content_type]
        level = request.level or "A1"

        if request.content_type == ContentType.UTTERANCE:
            word = request.metadata.get("word")
            if not word:
                raise ValueError("Utterance generation requires metadata.word")
            return template.format(word=word, language=request.language, level=level)

        if request.content_type == ContentType.GRAMMAR:
            category = request.metadata.get("category") or "general"
            return template.format(language=request.language, level=level, category=category)

        if request.content_type == ContentType.MEANING:
            avoid = request.metadata.get("avoid_words") or []
            avoid_clause = f"- Do not use any of: {', '.join(avoid)}\n" if avoid else ""
            return template.format(language=request.language, level=level, avoid_clause=avoid_clause)

        return template.format(language=request.language, level=level)

    def health_check(self) -> bool:
        return self.llm_client.ping()
