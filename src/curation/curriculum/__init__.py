from curation.curriculum.graph import CurriculumGraphService, is_concept_unlocked, topological_sort

__all__ = ["CurriculumGraphService", "is_concept_unlocked", "topological_sort"]
