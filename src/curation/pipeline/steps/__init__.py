from curation.pipeline.steps.approval import ApprovalStep
from curation.pipeline.steps.normalization import NormalizationStep
from curation.pipeline.steps.validation import QualityCheck, ValidationStep

__all__ = ["ApprovalStep", "NormalizationStep", "QualityCheck", "ValidationStep"]
