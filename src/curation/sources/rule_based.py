"""Deterministic orthography lessons from bundled alphabet data."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from curation.models import ContentType, GeneratedContent, SourceMetadata, SourceRequest
from curation.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

ORTHOGRAPHY_DATA_FILE = Path(__file__).parent / "data" / "orthography.json"


@lru_cache(maxsize=1)
def load_orthography_data() -> Dict[str, List[dict]]:
    """Letter rules per language: ``{language: [{letter, ipa, sound_description, example_words}]}``."""
    with open(ORTHOGRAPHY_DATA_FILE, "r", encoding="utf-8") as f:
        return json.load(f)


class RuleBasedAdapter(SourceAdapter):
    """Builds one orthography lesson per letter of a language's alphabet.

    Output is free and deterministic, so confidence is 1.0 and cost 0.
    """

    name = "rule-based"
    supported_types = frozenset({ContentType.ORTHOGRAPHY})

    def can_handle(self, request: SourceRequest) -> bool:
        return (
            request.content_type == ContentType.ORTHOGRAPHY
            and request.language in load_orthography_data()
        )

    def generate(self, request: SourceRequest) -> GeneratedContent:
        if request.content_type != ContentType.ORTHOGRAPHY:
            raise ValueError("Rule-based adapter only supports orthography")

        rules = load_orthography_data().get(request.language)
        if not rules:
            raise ValueError(f"No orthography rules for language: {request.language}")

        lessons = [
            {
                "letter": rule["letter"],
                "ipa": rule["ipa"],
                "sound_description": rule["sound_description"],
                "example_words": list(rule["example_words"]),
                "audio_url": None,
            }
            for rule in rules
        ]
        logger.info(f"Generated {len(lessons)} orthography lessons for {request.language}")

        return GeneratedContent(
            content_type=ContentType.ORTHOGRAPHY,
            language=request.language,
            level=request.level,
            data={"lessons": lessons, "total_letters": len(lessons)},
            source_metadata=SourceMetadata(source_name=self.name, confidence=1.0, tokens=0, cost=0.0),
        )

    def health_check(self) -> bool:
        return True
