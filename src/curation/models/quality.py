"""LLM quality judge evaluation models.

A judged item gets four dimension scores (1-10) with explanations and an
overall proceed/review recommendation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from curation.models.content import utc_now


class DimensionScore(BaseModel):
    """Score and explanation for a single evaluation dimension."""

    score: int = Field(..., ge=1, le=10, description="Score from 1 (poor) to 10 (excellent)")
    explanation: str = Field(..., min_length=10, max_length=500, description="Why this score")


class ContentQualityEvaluation(BaseModel):
    """Quality evaluation of one generated content item.

    Dimensions:
    1. Accuracy - Factual and linguistic correctness
    2. Level Appropriateness - Fit for the target CEFR level
    3. Naturalness - Whether a native speaker would say or write it
    4. Pedagogical Value - How useful it is to a learner
    """

    item_id: str = Field(default="", description="Id of the evaluated item")

    accuracy: DimensionScore
    level_appropriateness: DimensionScore
    naturalness: DimensionScore
    pedagogical_value: DimensionScore

    overall_recommendation: Literal["proceed", "review"] = Field(
        ..., description="'proceed' if the item is ready, 'review' if a human should look at it"
    )
    recommendation_justification: str = Field(..., min_length=20, max_length=500)

    evaluated_at: datetime = Field(default_factory=utc_now)
    evaluator_model: str = Field(default="")

    has_inconsistency: bool = False
    inconsistency_note: Optional[str] = None

    def scores(self) -> dict:
        return {
            "accuracy": self.accuracy.score,
            "level_appropriateness": self.level_appropriateness.score,
            "naturalness": self.naturalness.score,
            "pedagogical_value": self.pedagogical_value.score,
        }

    def average_score(self) -> float:
        values = list(self.scores().values())
        return sum(values) / len(values)
