"""LLM quality judge used as an extra check in the validation gate."""

import json
import logging
from typing import List

from curation.models import ContentItem, DataType
from curation.models.quality import ContentQualityEvaluation
from curation.pipeline.steps.validation import QualityCheck
from curation.utils.llm_client import LLMClient

logger = logging.getLogger(__name__)

JUDGE_SYSTEM_PROMPT = (
    "You are an expert language learning content evaluator. "
    "Provide detailed, objective assessments of educational content quality."
)

LEVEL_GUIDANCE = {
    "A1": "Expect very simple sentences, basic vocabulary, present tense focus",
    "A2": "Expect simple sentences, common vocabulary, some past tense, basic conjunctions",
    "B1": "Expect more complex sentences, broader vocabulary, multiple tenses",
    "B2": "Expect complex structures, idiomatic expressions, nuanced vocabulary",
}
ADVANCED_GUIDANCE = "Expect advanced structures, sophisticated vocabulary and native-like fluency"


class LLMQualityJudge(QualityCheck):
    """Rejects items the LLM recommends for review or scores below threshold.

    Orthography lessons come from curated alphabet data and are not judged.
    LLM errors propagate so the orchestrator retries the attempt.

    Args:
        llm_client: Configured LLM client
        min_average_score: Lowest acceptable mean dimension score (default: 6.0)
        inconsistency_threshold: Max-min score gap flagged as inconsistent (default: 4)
    """

    name = "llm-judge"

    def __init__(
        self,
        llm_client: LLMClient,
        min_average_score: float = 6.0,
        inconsistency_threshold: int = 4,
    ):
        self.llm_client = llm_client
        self.min_average_score = min_average_score
        self.inconsistency_threshold = inconsistency_threshold

    def applies_to(self, item: ContentItem) -> bool:
        return item.data_type != DataType.ORTHOGRAPHY

    def check(self, item: ContentItem) -> List[str]:
        evaluation = self.evaluate(item)

        problems = []
        if evaluation.overall_recommendation == "review":
            problems.append(evaluation.recommendation_justification)
        average = evaluation.average_score()
        if average < self.min_average_score:
            problems.append(f"Average score {average:.1f} below {self.min_average_score:.1f}")
        return problems

    def evaluate(self, item: ContentItem) -> ContentQualityEvaluation:
        language = item.payload.get("language", "")
        level = item.payload.get("level", "")
        logger.info(f"Judging {item.data_type.value} {item.id} ({language}/{level})")

        evaluation = self.llm_client.generate(
            prompt=self._build_prompt(item),
            response_model=ContentQualityEvaluation,
            temperature=0.3,
            system_prompt=JUDGE_SYSTEM_PROMPT,
        )
        evaluation.item_id = item.id
        evaluation.evaluator_model = self.llm_client.model
        self._detect_inconsistencies(evaluation)

        logger.info(
            f"Judgement complete: avg_score={evaluation.average_score():.1f}, "
            f"recommendation={evaluation.overall_recommendation}",
            extra={"item_id": item.id},
        )
        return evaluation

    def _build_prompt(self, item: ContentItem) -> str:
        level = str(item.payload.get("level") or "A1")
        content = json.dumps(item.payload, ensure_ascii=False, indent=2)
        return f"""Evaluate the following {item.data_type.value} item written for {item.payload.get('language')} learners at {level} level.

**Item:**
{content}

**Your Task:**
Score each dimension from 1 (poor) to 10 (excellent) with a short justification.

1. **Accuracy**: Is the content factually and linguistically correct?
2. **Level Appropriateness**: {LEVEL_GUIDANCE.get(level, ADVANCED_GUIDANCE)}
3. **Naturalness**: Would a native speaker say or write this?
4. **Pedagogical Value**: Does it teach something useful at this level?

**Overall Recommendation:**
- **overall_recommendation**: "proceed" if it can be published, "review" if a human must check it
- **recommendation_justification**: Clear reasoning for your recommendation
"""

    def _detect_inconsistencies(self, evaluation: ContentQualityEvaluation) -> None:
        scores = evaluation.scores()
        max_dim = max(scores, key=scores.get)
        min_dim = min(scores, key=scores.get)
        diff = scores[max_dim] - scores[min_dim]

        if diff >= self.inconsistency_threshold:
            evaluation.has_inconsistency = True
            evaluation.inconsistency_note = (
                f"Large score disparity: {max_dim}={scores[max_dim]} vs "
                f"{min_dim}={scores[min_dim]} ({diff}-point difference)"
            )
            logger.warning(
                f"Inconsistency detected in {evaluation.item_id}: {evaluation.inconsistency_note}"
            )
