"""Registry of source adapters with health-probed selection."""

import logging
from typing import Dict, List, Optional

from curation.models import SourceRequest
from curation.sources.base import SourceAdapter

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Holds adapters by name and picks a healthy one per request.

    Candidates are probed in registration order; re-registering a name
    replaces the adapter but keeps its original position.
    """

    def __init__(self):
        self._adapters: Dict[str, SourceAdapter] = {}

    def register(self, adapter: SourceAdapter) -> None:
        if not adapter.name:
            raise ValueError("Adapter must have a non-empty name")
        self._adapters[adapter.name] = adapter
        logger.info(
            f"Registered source adapter: {adapter.name}",
            extra={"adapter": adapter.name, "types": sorted(t.value for t in adapter.supported_types)},
        )

    def unregister(self, name: str) -> None:
        if self._adapters.pop(name, None) is not None:
            logger.info(f"Unregistered source adapter: {name}")

    def get_adapter(self, name: str) -> Optional[SourceAdapter]:
        return self._adapters.get(name)

    def list_adapters(self) -> List[SourceAdapter]:
        return list(self._adapters.values())

    def select_adapter(self, request: SourceRequest) -> Optional[SourceAdapter]:
        """Return the first adapter that can handle ``request`` and passes its health check.

        A health check that raises counts as unhealthy. Returns None when no
        adapter matches or every candidate is unhealthy.
        """
        candidates = [a for a in self._adapters.values() if a.can_handle(request)]

        if not candidates:
            logger.warning(
                f"No adapter supports {request.content_type.value} for {request.language}",
                extra={"content_type": request.content_type.value, "language": request.language},
            )
            return None

        for adapter in candidates:
            try:
                healthy = adapter.health_check()
            except Exception as e:
                logger.warning(
                    f"Health check raised for adapter {adapter.name}: {str(e)[:200]}",
                    extra={"adapter": adapter.name},
                )
                continue

            if healthy:
                logger.debug(f"Selected adapter {adapter.name} for {request.content_type.value}")
                return adapter

            logger.warning(f"Adapter {adapter.name} failed health check", extra={"adapter": adapter.name})

        logger.error(
            f"All {len(candidates)} adapters for {request.content_type.value} are unhealthy",
            extra={"candidates": [a.name for a in candidates]},
        )
        return None
