"""CANDIDATE -> VALIDATED: the quality gate.

Built-in checks run first (schema, required fields, language/level, per-type
rules and duplicate detection), then any extra ``QualityCheck`` such as the
LLM judge. A failed check is a deterministic result; an exception raised by a
repository or quality check is transient and propagates to the orchestrator,
which retries it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from curation import CEFR_LEVELS, SUPPORTED_LANGUAGES
from curation.models import ContentItem, DataType, StepResult
from curation.storage.base import ValidationRepository

logger = logging.getLogger(__name__)

MIN_DEFINITION_LENGTH = 5
MAX_DEFINITION_LENGTH = 1000

REQUIRED_FIELDS: Dict[DataType, List[str]] = {
    DataType.ORTHOGRAPHY: ["letter", "language", "example_words"],
    DataType.MEANING: ["word", "definition", "language", "level"],
    DataType.UTTERANCE: ["text", "language", "meaning_id"],
    DataType.RULE: ["title", "explanation", "language", "level", "examples"],
    DataType.EXERCISE: ["prompt", "options", "correct_index", "language", "level"],
}


class QualityCheck(ABC):
    """An extra check in the quality gate.

    ``check`` returns a list of problems (empty when the item passes). It may
    raise when a dependency is unavailable; that attempt is then retried.
    """

    name: str = "quality-check"

    def applies_to(self, item: ContentItem) -> bool:
        return True

    @abstractmethod
    def check(self, item: ContentItem) -> List[str]:
        pass


class ValidationStep:
    def __init__(self, repository: ValidationRepository, quality_checks: Sequence[QualityCheck] = ()):
        self.repository = repository
        self.quality_checks = list(quality_checks)

    def validate(self, item: ContentItem) -> StepResult:
        data = item.payload

        for precheck in (self._validate_schema, self._validate_required_fields, self._validate_language):
            errors = precheck(item.data_type, data)
            if errors:
                return StepResult.failed(errors)

        type_checks = {
            DataType.ORTHOGRAPHY: self._validate_orthography,
            DataType.MEANING: self._validate_meaning,
            DataType.UTTERANCE: self._validate_utterance,
            DataType.RULE: self._validate_rule,
            DataType.EXERCISE: self._validate_exercise,
        }
        errors = type_checks[item.data_type](item.id, data)
        if errors:
            return StepResult.failed(errors)

        for quality_check in self.quality_checks:
            if not quality_check.applies_to(item):
                continue
            problems = quality_check.check(item)
            if problems:
                logger.info(
                    f"Quality check {quality_check.name} rejected {item.id}",
                    extra={"item_id": item.id, "check": quality_check.name, "problems": problems},
                )
                return StepResult.failed([f"{quality_check.name}: {p}" for p in problems])

        return StepResult.ok(dict(data))

    def _validate_schema(self, data_type: DataType, data: Dict[str, Any]) -> List[str]:
        if data_type == DataType.MEANING and not isinstance(data.get("word"), str):
            return ["Word must be a string"]
        if data_type == DataType.EXERCISE:
            index = data.get("correct_index")
            if isinstance(index, bool) or not isinstance(index, int):
                return ["Correct answer index must be an integer"]
        return []

    def _validate_required_fields(self, data_type: DataType, data: Dict[str, Any]) -> List[str]:
        required = REQUIRED_FIELDS.get(data_type)
        if required is None:
            return [f"Unknown data type: {data_type}"]
        for field in required:
            if data.get(field) is None:
                return [f"Missing required field: {field}"]
        return []

    def _validate_language(self, data_type: DataType, data: Dict[str, Any]) -> List[str]:
        language = str(data.get("language"))
        if language not in SUPPORTED_LANGUAGES:
            return [f"Invalid language: {language}"]

        level = data.get("level")
        if level is not None and level not in CEFR_LEVELS:
            return [f"Invalid CEFR level: {level}"]
        return []

    def _validate_orthography(self, item_id: str, data: Dict[str, Any]) -> List[str]:
        errors = []
        if self.repository.check_duplicate_orthography(data["letter"], data["language"], item_id):
            errors.append(f"Duplicate orthography lesson for letter \"{data['letter']}\"")
        examples = data.get("example_words")
        if not isinstance(examples, list) or not all(isinstance(w, str) and w for w in examples):
            errors.append("Example words must be non-empty strings")
        return errors

    def _validate_meaning(self, item_id: str, data: Dict[str, Any]) -> List[str]:
        errors = []
        if self.repository.check_duplicate_meaning(data["word"], data["language"], data["level"], item_id):
            errors.append(f"Duplicate word \"{data['word']}\" already exists for this level")

        definition = str(data["definition"])
        if len(definition) < MIN_DEFINITION_LENGTH:
            errors.append(f"Definition too short (min {MIN_DEFINITION_LENGTH} characters)")
        if len(definition) > MAX_DEFINITION_LENGTH:
            errors.append(f"Definition too long (max {MAX_DEFINITION_LENGTH} characters)")
        return errors

    def _validate_utterance(self, item_id: str, data: Dict[str, Any]) -> List[str]:
        errors = []
        meaning_id = str(data["meaning_id"])
        if not self.repository.meaning_exists(meaning_id):
            errors.append(f"Meaning ID {meaning_id} does not exist")
        if self.repository.check_duplicate_utterance(data["text"], data["language"], item_id):
            errors.append("Duplicate utterance text already exists")
        return errors

    def _validate_rule(self, item_id: str, data: Dict[str, Any]) -> List[str]:
        errors = []
        if self.repository.check_duplicate_rule(data["title"], data["language"], data["level"], item_id):
            errors.append(f"Duplicate grammar rule \"{data['title']}\" already exists")

        examples = data["examples"] if isinstance(data["examples"], list) else []
        if not examples:
            errors.append("Grammar rule must have at least 1 example")
        for example in examples:
            if not isinstance(example, dict):
                errors.append("Each example must be an object")
                break
            if not example.get("correct"):
                errors.append('Each example must have a "correct" field')
                break
        return errors

    def _validate_exercise(self, item_id: str, data: Dict[str, Any]) -> List[str]:
        errors = []
        options = data["options"] if isinstance(data["options"], list) else []
        correct_index = data["correct_index"]

        if not 0 <= correct_index < len(options):
            errors.append(f"Correct answer index {correct_index} is out of range")
        if len({str(o) for o in options}) != len(options):
            errors.append("Exercise options must be unique")
        if any(not isinstance(o, str) or not o.strip() for o in options):
            errors.append("All exercise options must be non-empty strings")
        return errors
