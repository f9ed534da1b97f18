"""Exception hierarchy for the curation engine."""


class CurationError(Exception):
    """Base class for all curation engine errors."""


class NoAdapterAvailableError(CurationError):
    """No registered source adapter can serve a work item right now."""

    def __init__(self, work_item_id: str, content_type: str):
        self.work_item_id = work_item_id
        self.content_type = content_type
        super().__init__(
            f"No adapter available for work item {work_item_id} (type={content_type})"
        )


class StageConflictError(CurationError):
    """An item was not in the stage a transition expected it to be in."""

    def __init__(self, item_id: str, expected_stage: str, actual_stage: str | None):
        self.item_id = item_id
        self.expected_stage = expected_stage
        self.actual_stage = actual_stage
        super().__init__(
            f"Item {item_id} expected in stage {expected_stage}, found {actual_stage or 'nowhere'}"
        )


class CurriculumGraphError(CurationError):
    """Base class for curriculum graph integrity errors."""


class CurriculumCycleError(CurriculumGraphError):
    """The prerequisite edges of a language do not form a DAG."""

    def __init__(self, language: str, unresolved: list[str] | None = None):
        self.language = language
        self.unresolved = unresolved or []
        detail = f": {', '.join(self.unresolved)}" if self.unresolved else ""
        super().__init__(f"Cycle detected in curriculum graph for {language}{detail}")


class UnknownPrerequisiteError(CurriculumGraphError):
    """A node names a prerequisite that is not part of its language's graph."""

    def __init__(self, language: str, concept_id: str, prerequisite_id: str):
        self.language = language
        self.concept_id = concept_id
        self.prerequisite_id = prerequisite_id
        super().__init__(
            f"Concept {concept_id} ({language}) requires unknown concept {prerequisite_id}"
        )


class DuplicateConceptError(CurriculumGraphError):
    """The same concept id appears more than once in a language's graph."""

    def __init__(self, language: str, concept_id: str):
        self.language = language
        self.concept_id = concept_id
        super().__init__(f"Duplicate concept id {concept_id} in curriculum graph for {language}")
