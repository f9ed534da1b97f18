"""Turns a planned WorkItem into DRAFT items via the source registry."""

import logging
from typing import Any, Dict, List, Tuple

from curation.exceptions import NoAdapterAvailableError
from curation.models import (
    ContentItem,
    ContentType,
    DataType,
    GeneratedContent,
    GenerationCost,
    SourceRequest,
    WorkItem,
)
from curation.sources.registry import SourceRegistry
from curation.storage.base import ContentProcessorRepository

logger = logging.getLogger(__name__)


class ContentProcessor:
    def __init__(self, registry: SourceRegistry, repository: ContentProcessorRepository):
        self.registry = registry
        self.repository = repository

    def process(self, work_item: WorkItem) -> List[ContentItem]:
        """Generate content for ``work_item`` and store it as drafts.

        Raises:
            NoAdapterAvailableError: If no healthy adapter can handle the item
        """
        request = SourceRequest.from_work_item(work_item)
        adapter = self.registry.select_adapter(request)
        if adapter is None:
            raise NoAdapterAvailableError(work_item.id, work_item.content_type.value)

        logger.info(
            f"Generating {work_item.content_type.value} for {work_item.id} via {adapter.name}",
            extra={"work_id": work_item.id, "adapter": adapter.name},
        )
        generated = adapter.generate(request)

        drafts = [
            self.repository.insert_draft(data_type, payload)
            for data_type, payload in self.build_drafts(work_item, generated)
        ]

        metadata = generated.source_metadata
        if metadata.cost:
            self.repository.record_generation_cost(
                GenerationCost(
                    source_name=metadata.source_name,
                    content_type=generated.content_type,
                    language=generated.language,
                    tokens=metadata.tokens or 0,
                    cost_usd=metadata.cost,
                )
            )

        logger.info(
            f"Inserted {len(drafts)} drafts for {work_item.id}",
            extra={"work_id": work_item.id, "drafts": len(drafts), "cost_usd": metadata.cost or 0.0},
        )
        return drafts

    def build_drafts(
        self, work_item: WorkItem, generated: GeneratedContent
    ) -> List[Tuple[DataType, Dict[str, Any]]]:
        """Split generated content into (data type, payload) draft rows.

        Orthography output holds one lesson per letter and becomes one draft
        per lesson; every other type becomes a single draft.
        """
        provenance = {
            "source_name": generated.source_metadata.source_name,
            "confidence": generated.source_metadata.confidence,
        }
        base = {"language": generated.language, "level": generated.level or work_item.level}

        if generated.content_type == ContentType.ORTHOGRAPHY:
            return [
                (DataType.ORTHOGRAPHY, {**lesson, **base, "level": "A1", **provenance})
                for lesson in generated.data.get("lessons", [])
            ]

        payload = {**generated.data, **base, **provenance}
        if generated.content_type == ContentType.UTTERANCE:
            payload["meaning_id"] = work_item.metadata.get("meaning_id")
        elif generated.content_type == ContentType.GRAMMAR:
            payload["category"] = work_item.metadata.get("category") or "general"

        return [(DataType.from_content_type(generated.content_type), payload)]
