"""DRAFT -> CANDIDATE: structural checks and cleanup.

Pure and synchronous; every failure here is deterministic.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional

from curation.models import ContentItem, DataType, StepResult

MAX_WORD_LENGTH = 100
MAX_DEFINITION_LENGTH = 1000
MAX_LETTER_LENGTH = 10
MIN_UTTERANCE_WORDS = 2
MAX_UTTERANCE_WORDS = 50
MIN_EXERCISE_OPTIONS = 2
MAX_EXERCISE_OPTIONS = 6

_TERMINAL_PUNCTUATION = re.compile(r"[.!?。？！]$")


def _trim(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip()


def _capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def _parse_list(value: Any) -> Optional[List[Any]]:
    """Accept a list, or a JSON string encoding one."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, list):
            return parsed
    return None


class NormalizationStep:
    """Normalizes a draft's payload; returns the cleaned payload on success."""

    def __init__(self):
        self._normalizers: Dict[DataType, Callable[[Dict[str, Any]], StepResult]] = {
            DataType.ORTHOGRAPHY: self._normalize_orthography,
            DataType.MEANING: self._normalize_meaning,
            DataType.UTTERANCE: self._normalize_utterance,
            DataType.RULE: self._normalize_rule,
            DataType.EXERCISE: self._normalize_exercise,
        }

    def normalize(self, item: ContentItem) -> StepResult:
        normalizer = self._normalizers.get(item.data_type)
        if normalizer is None:
            return StepResult.failed([f"Unknown data type: {item.data_type}"])
        return normalizer(dict(item.payload))

    def _normalize_orthography(self, data: Dict[str, Any]) -> StepResult:
        errors = []
        letter = _trim(data.get("letter"))
        examples = _parse_list(data.get("example_words"))

        if not letter:
            errors.append("Letter is required")
        elif len(letter) > MAX_LETTER_LENGTH:
            errors.append(f"Letter is too long (max {MAX_LETTER_LENGTH} characters)")
        if not data.get("language"):
            errors.append("Language is required")
        if not examples:
            errors.append("At least one example word is required")

        if errors:
            return StepResult.failed(errors)

        data["letter"] = letter
        data["example_words"] = [str(w).strip() for w in examples]
        for field in ("ipa", "sound_description"):
            if isinstance(data.get(field), str):
                data[field] = data[field].strip()
        data.setdefault("level", "A1")
        return StepResult.ok(data)

    def _normalize_meaning(self, data: Dict[str, Any]) -> StepResult:
        errors = []
        word = _trim(data.get("word"))
        definition = _trim(data.get("definition"))

        if not word:
            errors.append("Word is required")
        if not definition:
            errors.append("Definition is required")
        if word and len(word) > MAX_WORD_LENGTH:
            errors.append(f"Word is too long (max {MAX_WORD_LENGTH} characters)")
        if definition and len(definition) > MAX_DEFINITION_LENGTH:
            errors.append(f"Definition is too long (max {MAX_DEFINITION_LENGTH} characters)")
        if not data.get("language"):
            errors.append("Language is required")
        if not data.get("level"):
            errors.append("Level is required")

        if errors:
            return StepResult.failed(errors)

        data["word"] = word
        data["definition"] = _capitalize_first(definition)
        return StepResult.ok(data)

    def _normalize_utterance(self, data: Dict[str, Any]) -> StepResult:
        errors = []
        text = _trim(data.get("text"))
        translation = _trim(data.get("translation"))

        if not text:
            errors.append("Text is required")
        if not data.get("meaning_id"):
            errors.append("Meaning ID is required")
        if text:
            word_count = len(text.split())
            if word_count < MIN_UTTERANCE_WORDS:
                errors.append(f"Utterance too short (min {MIN_UTTERANCE_WORDS} words)")
            if word_count > MAX_UTTERANCE_WORDS:
                errors.append(f"Utterance too long (max {MAX_UTTERANCE_WORDS} words)")

        if errors:
            return StepResult.failed(errors)

        text = _capitalize_first(text)
        if not _TERMINAL_PUNCTUATION.search(text):
            text += "."
        data["text"] = text
        if translation:
            data["translation"] = _capitalize_first(translation)
        return StepResult.ok(data)

    def _normalize_rule(self, data: Dict[str, Any]) -> StepResult:
        errors = []
        title = _trim(data.get("title"))
        explanation = _trim(data.get("explanation"))
        examples = _parse_list(data.get("examples"))

        if not title:
            errors.append("Title is required")
        if not explanation:
            errors.append("Explanation is required")
        if not data.get("language"):
            errors.append("Language is required")
        if not data.get("level"):
            errors.append("Level is required")
        if not examples:
            errors.append("At least one example is required")

        if errors:
            return StepResult.failed(errors)

        data["title"] = title
        data["explanation"] = explanation
        data["examples"] = examples
        return StepResult.ok(data)

    def _normalize_exercise(self, data: Dict[str, Any]) -> StepResult:
        errors = []
        prompt = _trim(data.get("prompt"))
        options = _parse_list(data.get("options"))
        correct_index = data.get("correct_index")

        if not prompt:
            errors.append("Prompt is required")

        if options is None:
            errors.append("Options must be a valid array")
        elif len(options) < MIN_EXERCISE_OPTIONS:
            errors.append(f"At least {MIN_EXERCISE_OPTIONS} options required")
        elif len(options) > MAX_EXERCISE_OPTIONS:
            errors.append(f"Maximum {MAX_EXERCISE_OPTIONS} options allowed")

        if correct_index is None:
            errors.append("Correct answer index is required")
        elif options is not None and not (
            isinstance(correct_index, int)
            and not isinstance(correct_index, bool)
            and 0 <= correct_index < len(options)
        ):
            errors.append("Correct answer index out of range")

        if not data.get("language"):
            errors.append("Language is required")
        if not data.get("level"):
            errors.append("Level is required")

        if errors:
            return StepResult.failed(errors)

        data["prompt"] = prompt
        data["options"] = options
        return StepResult.ok(data)
