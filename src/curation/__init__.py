"""
Content Curation Engine for Language Learning

This package plans, generates, validates and approves machine-generated
learning content (orthography lessons, vocabulary meanings, example
utterances, grammar rules, exercises) and maintains the per-language
curriculum prerequisite graph that decides what a learner studies next.

**Version**: 0.1.0
**Key Dependencies**: pydantic, instructor, openai, python-dotenv, tqdm
"""

__version__ = "0.1.0"
__author__ = "Curation Team"

# Languages the planner generates content for, in tie-break order
SUPPORTED_LANGUAGES = ["EN", "ES", "IT", "PT", "SL"]

# CEFR levels for generated content, ascending
CEFR_LEVELS = ["A1", "A2", "B1", "B2", "C1", "C2"]

# Curriculum nodes additionally use the pre-A1 beginner level
CURRICULUM_LEVELS = ["A0", *CEFR_LEVELS]

__all__ = [
    "__version__",
    "__author__",
    "SUPPORTED_LANGUAGES",
    "CEFR_LEVELS",
    "CURRICULUM_LEVELS",
]
