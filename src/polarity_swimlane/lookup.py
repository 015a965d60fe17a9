"""Lookup orchestration: batching, bounded parallelism and summary tags.

Entities are split into groups and a limited number of groups run at
once. A failure for one entity is reported on that entity's result and
does not abort the rest of the batch; only a failure to build the
application directory fails the whole lookup.
"""

import asyncio
import time
from typing import Any, Iterable, Mapping

from .client import SwimlaneClient
from .config import IntegrationOptions, Settings, get_settings
from .elastic import ElasticsearchClient
from .errors import ConfigurationError, SwimlaneError
from .logging import get_context_logger, log_lookup_complete
from .models import ElasticDetail, ElasticHit, Entity, LookupResult, SearchResult

logger = get_context_logger(__name__)

REQUIRED_OPTIONS = {
    "url": "You must provide a Swimlane URL",
    "username": "You must provide a username",
    "password": "You must provide a password",
    "applications": "You must provide a comma delimited list of Applications to search",
}


# =========================
# Summary tags
# =========================


def slice_tags(tags: Iterable[str], num_tags: int) -> list[str]:
    """Deduplicate tags and keep the first ``num_tags``, noting the rest."""
    unique = list(dict.fromkeys(tags))
    sliced = unique[:num_tags]
    if len(sliced) < len(unique):
        sliced.append(f"+{len(unique) - len(sliced)} more")
    return sliced


def get_tags(records: Iterable[SearchResult], num_tags: int) -> list[str]:
    """Summary tags of the form ``<acronym>-<tracking id>``."""
    return slice_tags(
        (f"{record.app_acronym}-{record.record_tracking_id}" for record in records),
        num_tags,
    )


def _hit_tags(hits: Iterable[ElasticHit], num_tags: int) -> list[str]:
    return slice_tags((hit.record_tracking_id or hit.doc_id for hit in hits), num_tags)


# =========================
# Option validation
# =========================


def validate_options(user_options: Mapping[str, Any]) -> list[dict[str, str]]:
    """Check required options before they reach the client.

    Values may be given directly or wrapped as ``{"value": ...}``.

    Returns:
        One ``{"key", "message"}`` entry per invalid option
    """
    errors = []
    for key, message in REQUIRED_OPTIONS.items():
        value = user_options.get(key)
        if isinstance(value, Mapping):
            value = value.get("value")
        if not isinstance(value, str) or len(value.strip()) == 0:
            errors.append({"key": key, "message": message})
    return errors


def _as_entity(entity: Entity | Mapping[str, Any] | str) -> Entity:
    if isinstance(entity, Entity):
        return entity
    if isinstance(entity, str):
        return Entity(value=entity)
    return Entity.model_validate(entity)


# =========================
# Orchestrator
# =========================


class LookupOrchestrator:
    """Runs entity lookups against Swimlane or its Elasticsearch mirror."""

    def __init__(
        self,
        client: SwimlaneClient,
        elastic: ElasticsearchClient | None = None,
        settings: Settings | None = None,
    ):
        self.client = client
        self.elastic = elastic
        settings = settings or get_settings()
        self.group_size = settings.entity_group_size
        self.max_concurrent_groups = settings.max_concurrent_groups

    async def do_lookup(
        self,
        entities: Iterable[Entity | Mapping[str, Any] | str],
        options: IntegrationOptions,
    ) -> list[LookupResult]:
        """Look up every entity and return one result per entity.

        Raises:
            SwimlaneError: If the application directory cannot be built
        """
        start = time.monotonic()
        entities = [_as_entity(entity) for entity in entities]

        await self.client.cache_apps(options)

        groups = [
            entities[i:i + self.group_size] for i in range(0, len(entities), self.group_size)
        ]
        semaphore = asyncio.Semaphore(self.max_concurrent_groups)

        async def run_group(group: list[Entity]) -> list[LookupResult]:
            async with semaphore:
                return await self._lookup_group(group, options)

        group_results = await asyncio.gather(*(run_group(group) for group in groups))
        results = [result for group in group_results for result in group]

        log_lookup_complete(
            entity_count=len(results),
            hit_count=sum(1 for r in results if r.data is not None),
            error_count=sum(1 for r in results if r.error is not None),
            duration_seconds=time.monotonic() - start,
        )
        return results

    async def _lookup_group(
        self, group: list[Entity], options: IntegrationOptions
    ) -> list[LookupResult]:
        if self.elastic is not None and options.search_elasticsearch:
            return await self._lookup_group_elastic(group, options)
        return list(
            await asyncio.gather(*(self._lookup_entity(entity, options) for entity in group))
        )

    async def _lookup_entity(self, entity: Entity, options: IntegrationOptions) -> LookupResult:
        try:
            page = await self.client.search(entity.value, options)
        except SwimlaneError as e:
            logger.warning(
                f"Lookup failed for {entity.value}: {e.detail}",
                extra={"error_code": e.error_code},
            )
            return LookupResult(entity=entity, error=e.to_detail())

        if not page.results:
            return LookupResult(entity=entity, data=None)

        return LookupResult(
            entity=entity,
            data={
                "summary": get_tags(page.results, options.num_tags),
                "details": {
                    "records": [record.to_render() for record in page.results],
                    "totalCount": page.total_count,
                },
            },
        )

    async def _lookup_group_elastic(
        self, group: list[Entity], options: IntegrationOptions
    ) -> list[LookupResult]:
        try:
            hits_by_entity = await self.elastic.search_entities(
                [entity.value for entity in group], options
            )
        except SwimlaneError as e:
            logger.warning(
                f"Elasticsearch lookup failed for {len(group)} entities: {e.detail}",
                extra={"error_code": e.error_code},
            )
            error = e.to_detail()
            return [LookupResult(entity=entity, error=error) for entity in group]

        results = []
        for entity in group:
            hits = hits_by_entity.get(entity.value) or []
            if not hits:
                results.append(LookupResult(entity=entity, data=None))
                continue
            results.append(
                LookupResult(
                    entity=entity,
                    data={
                        "summary": _hit_tags(hits, options.num_tags),
                        "details": {"results": [{"hit": hit.to_render()} for hit in hits]},
                    },
                )
            )
        return results

    async def get_details(
        self,
        doc_ids: list[str],
        entity_value: str,
        options: IntegrationOptions,
    ) -> list[ElasticDetail]:
        """Fetch highlighted details for documents found in the mirror."""
        if self.elastic is None:
            raise ConfigurationError("No Elasticsearch backend is configured")
        return await self.elastic.get_details(doc_ids, entity_value, options)
