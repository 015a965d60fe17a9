"""Elasticsearch mirror backend.

Searches an Elasticsearch index holding copies of Swimlane records. Several
entities are batched into a single ``_msearch`` call; a follow-up
``_search`` with a highlight clause fetches match fragments for selected
documents. Application and field ids in the documents are translated to
display names through the same ``AppDirectory`` the Swimlane client keeps.

Documents are expected to look like::

    {"applicationId": "...", "trackingFull": "INC-42", "values": {"<fieldId>": ...}}
"""

import json
import time
from typing import Any, Iterable

import httpx

from .client import record_url
from .config import IntegrationOptions, Settings
from .directory import AppDirectory
from .errors import (
    ConfigurationError,
    DirectoryUnavailableError,
    ParseError,
    ProtocolError,
    TransportError,
)
from .highlight import normalize_es_fragment
from .logging import get_context_logger, log_api_request
from .models import ElasticDetail, ElasticHit, HighlightedField
from .transport import build_http_client

logger = get_context_logger(__name__)

VALUES_PREFIX = "values."

# Sentinel tags; fragments are escaped and these become match spans
HIGHLIGHT_PRE_TAG = "\u0002"
HIGHLIGHT_POST_TAG = "\u0003"

ERROR_TITLES = {
    400: "Bad Request",
    403: "Forbidden",
    404: "Index Not Found",
    409: "Conflict",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def entity_query(entity_value: str, app_ids: list[str] | None = None) -> dict[str, Any]:
    """Phrase query for an entity across all record values."""
    query: dict[str, Any] = {
        "bool": {
            "must": [
                {
                    "multi_match": {
                        "query": entity_value,
                        "type": "phrase",
                        "fields": [f"{VALUES_PREFIX}*"],
                        "lenient": True,
                    }
                }
            ]
        }
    }
    if app_ids:
        query["bool"]["filter"] = [{"terms": {"applicationId": app_ids}}]
    return query


def parse_msearch_response(text: str) -> list[dict[str, Any]]:
    """Extract the per-query responses from a ``_msearch`` reply.

    Accepts the standard ``{"responses": [...]}`` document as well as
    newline-delimited JSON with one response object per line.
    """
    try:
        body = json.loads(text)
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("responses"), list):
        return body["responses"]

    responses = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            responses.append(json.loads(line))
        except ValueError as e:
            raise ParseError("Invalid multi-search response", body=text) from e
    return responses


class ElasticsearchClient:
    """Batch search and highlighted detail fetch against the record mirror."""

    def __init__(
        self,
        directory: AppDirectory,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self.directory = directory
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._settings = settings

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = build_http_client(self._settings)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    # =========================
    # Transport
    # =========================

    async def _post(
        self,
        options: IntegrationOptions,
        path: str,
        action: str,
        **kwargs,
    ) -> httpx.Response:
        if not options.elasticsearch_url:
            raise ConfigurationError("An Elasticsearch URL is required to search the record mirror")

        url = f"{options.elasticsearch_url}/{options.elasticsearch_index}/{path}"
        auth = None
        if options.elasticsearch_username:
            auth = httpx.BasicAuth(options.elasticsearch_username, options.elasticsearch_password)

        start = time.monotonic()
        try:
            response = await self.http_client.post(url, auth=auth, **kwargs)
        except httpx.HTTPError as e:
            log_api_request("POST", url, None, (time.monotonic() - start) * 1000)
            logger.error(f"HTTP Error: {action}", extra={"error": str(e)})
            raise TransportError(f"HTTP Error: {action}") from e

        log_api_request("POST", url, response.status_code, (time.monotonic() - start) * 1000)
        if not response.is_success:
            self._raise_for_status(action, response)
        return response

    @staticmethod
    def _raise_for_status(action: str, response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = response.text

        title = ERROR_TITLES.get(response.status_code, "Unexpected Response")
        logger.error(
            f"Elasticsearch {title}: {action}",
            extra={"status_code": response.status_code, "body": body},
        )
        raise ProtocolError(
            f"Elasticsearch {title}: {action}",
            status_code=response.status_code,
            body=body,
            title=title,
        )

    def _directory_ready(self) -> bool:
        """Whether hits can be read against the directory.

        Raises:
            DirectoryUnavailableError: The last directory rebuild failed
        """
        if self.directory.caching_failed:
            raise DirectoryUnavailableError(
                "Swimlane applications could not be cached; searches are disabled "
                "until the application cache is rebuilt"
            )
        if self.directory.is_caching:
            logger.debug("Application cache rebuild in progress, skipping Elasticsearch search")
            return False
        return True

    def _app_ids(self, options: IntegrationOptions) -> list[str] | None:
        # A directory that was never built leaves the search unscoped
        if self.directory.instance_id is None:
            return None
        return self.directory.resolve_app_ids(options.application_names)

    # =========================
    # Search
    # =========================

    async def search_entities(
        self,
        entity_values: Iterable[str],
        options: IntegrationOptions,
    ) -> dict[str, list[ElasticHit]]:
        """Search several entities with one ``_msearch`` request.

        Returns:
            Hits keyed by entity value, in the order the entities were given.
            Every entity maps to an empty list while the directory is rebuilt.

        Raises:
            DirectoryUnavailableError: The last directory rebuild failed
            ProtocolError: The request or any of its sub-queries failed
        """
        entity_values = list(dict.fromkeys(entity_values))
        if not entity_values:
            return {}
        if not self._directory_ready():
            return {value: [] for value in entity_values}

        app_ids = self._app_ids(options)
        lines = []
        for value in entity_values:
            lines.append(json.dumps({}))
            lines.append(
                json.dumps({"size": options.max_results, "query": entity_query(value, app_ids)})
            )
        payload = "\n".join(lines) + "\n"

        response = await self._post(
            options,
            "_msearch",
            "Searching Elasticsearch",
            content=payload,
            headers={"Content-Type": "application/x-ndjson"},
        )
        responses = parse_msearch_response(response.text)
        if len(responses) != len(entity_values):
            raise ParseError(
                f"Expected {len(entity_values)} multi-search responses, got {len(responses)}",
                body=responses,
            )

        hits_by_entity: dict[str, list[ElasticHit]] = {}
        for value, item in zip(entity_values, responses):
            if "error" in item:
                status = item.get("status") or 500
                title = ERROR_TITLES.get(status, "Unexpected Response")
                raise ProtocolError(
                    f"Elasticsearch {title}: Searching Elasticsearch for {value}",
                    status_code=status,
                    body=item["error"],
                    title=title,
                )
            raw_hits = (item.get("hits") or {}).get("hits") or []
            hits_by_entity[value] = [self._to_hit(raw, options) for raw in raw_hits]

        return hits_by_entity

    def _to_hit(self, raw: dict[str, Any], options: IntegrationOptions) -> ElasticHit:
        source = raw.get("_source") or {}
        app_id = source.get("applicationId")
        app = self.directory.get_app(app_id) if app_id else None
        if app_id and app is None:
            logger.debug(f"Hit {raw.get('_id')} references unknown application {app_id}")

        return ElasticHit(
            doc_id=raw["_id"],
            index=raw.get("_index", options.elasticsearch_index),
            score=raw.get("_score"),
            app_id=app_id,
            app_name=app.name if app else None,
            app_acronym=app.acronym if app else None,
            record_tracking_id=source.get("trackingFull") or source.get("trackingId"),
            record_url=record_url(options.url, app_id, raw["_id"]) if app_id and options.url else None,
            source=source,
        )

    # =========================
    # Details
    # =========================

    async def get_details(
        self,
        doc_ids: list[str],
        entity_value: str,
        options: IntegrationOptions,
    ) -> list[ElasticDetail]:
        """Re-fetch matched documents with highlighting enabled.

        Highlighted ``values.<fieldId>`` keys are translated to field names;
        fields the directory does not know are dropped, as are fields outside
        the detail-field allow-list when one is configured.
        """
        if not doc_ids or not self._directory_ready():
            return []

        body: dict[str, Any] = {
            "size": len(doc_ids),
            "query": {"ids": {"values": doc_ids}},
        }
        if options.highlight_enabled:
            body["highlight"] = {
                "pre_tags": [HIGHLIGHT_PRE_TAG],
                "post_tags": [HIGHLIGHT_POST_TAG],
                "fields": {f"{VALUES_PREFIX}*": {}},
                "highlight_query": entity_query(entity_value),
            }

        response = await self._post(options, "_search", "Retrieving Elasticsearch details", json=body)
        try:
            raw_hits = response.json()["hits"]["hits"]
        except (ValueError, KeyError, TypeError) as e:
            raise ParseError("Invalid Elasticsearch search response", body=response.text) from e

        details = []
        for raw in raw_hits:
            hit = self._to_hit(raw, options)
            highlights = self.map_highlights(hit.app_id, raw.get("highlight") or {}, options)
            details.append(ElasticDetail(hit=hit, highlights=highlights))
        return details

    def map_highlights(
        self,
        app_id: str | None,
        highlight: dict[str, list[str]],
        options: IntegrationOptions,
    ) -> list[HighlightedField]:
        """Resolve highlighted field keys to display names."""
        allowed = options.detail_field_names
        fields = []
        for key, fragments in highlight.items():
            field_id = key[len(VALUES_PREFIX):] if key.startswith(VALUES_PREFIX) else key
            field_name = self.directory.get_field_name(app_id, field_id) if app_id else None
            if field_name is None:
                logger.debug(f"Skipping highlight for unknown field {field_id}")
                continue
            if allowed and field_name.lower() not in allowed:
                continue

            fields.append(
                HighlightedField(
                    field_id=field_id,
                    field_name=field_name,
                    fragments=[
                        normalize_es_fragment(fragment, HIGHLIGHT_PRE_TAG, HIGHLIGHT_POST_TAG)
                        for fragment in fragments
                    ],
                )
            )
        return fields
