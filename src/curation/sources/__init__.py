"""Generation backends and the registry that picks one per request."""

from curation.sources.base import SourceAdapter
from curation.sources.registry import SourceRegistry
from curation.sources.rule_based import RuleBasedAdapter

__all__ = ["RuleBasedAdapter", "SourceAdapter", "SourceRegistry"]
