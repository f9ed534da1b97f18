"""Base class for content generation backends."""

from abc import ABC, abstractmethod
from typing import FrozenSet

from curation.models import ContentType, GeneratedContent, SourceRequest


class SourceAdapter(ABC):
    """Abstract base class for content generation backends.

    Subclasses declare which content types they produce and implement
    ``generate`` and ``health_check``. Adapters never retry internally; the
    registry and worker decide what happens on failure.

    Example:
        >>> class MyAdapter(SourceAdapter):
        ...     name = "my-backend"
        ...     supported_types = frozenset({ContentType.MEANING})
        ...     def generate(self, request): ...
        ...     def health_check(self): return True
    """

    name: str = ""
    supported_types: FrozenSet[ContentType] = frozenset()

    def can_handle(self, request: SourceRequest) -> bool:
        """Whether this adapter can serve ``request``.

        Args:
            request: Generation request

        Returns:
            True if the request's content type is supported
        """
        return request.content_type in self.supported_types

    @abstractmethod
    def generate(self, request: SourceRequest) -> GeneratedContent:
        """Produce content for ``request``.

        Args:
            request: Generation request the adapter said it can handle

        Returns:
            Generated payload with source metadata

        Raises:
            Exception: Any backend failure; callers treat it as a failed generation
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Cheap liveness probe run before every selection."""
        pass

    def __repr__(self) -> str:
        types = ", ".join(sorted(t.value for t in self.supported_types))
        return f"{self.__class__.__name__}(name={self.name!r}, types=[{types}])"
