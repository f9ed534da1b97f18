"""Structured response models the LLM adapter asks for, one per content type."""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class MeaningDraft(BaseModel):
    word: str = Field(..., min_length=1, max_length=100, description="Word in the target language")
    definition: str = Field(..., min_length=5, description="English definition")
    part_of_speech: str = Field(..., description="noun, verb, adjective, adverb, preposition or conjunction")
    usage_notes: Optional[str] = None


class UtteranceDraft(BaseModel):
    text: str = Field(..., min_length=1, description="Sentence in the target language")
    translation: str = Field(..., description="English translation")
    usage_notes: Optional[str] = None


class GrammarExample(BaseModel):
    correct: str = Field(..., min_length=1)
    incorrect: Optional[str] = None
    note: Optional[str] = None


class GrammarRuleDraft(BaseModel):
    title: str = Field(..., min_length=1)
    explanation: str = Field(..., min_length=1)
    examples: List[GrammarExample] = Field(..., min_length=1)
    common_mistakes: Optional[str] = None


class ExerciseDraft(BaseModel):
    prompt: str = Field(..., min_length=1, description="Fill-in-the-blank sentence")
    options: List[str] = Field(..., min_length=2, max_length=6)
    correct_index: int = Field(..., ge=0, description="0-based index into options")
    explanation: Optional[str] = None

    @model_validator(mode="after")
    def validate_correct_index(self):
        if self.correct_index >= len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.options)} options"
            )
        return self
