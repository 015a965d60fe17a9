"""Swimlane REST API client.

Authenticates with username/password, keeps bearer tokens in an
``AccessTokenCache``, maintains the ``AppDirectory`` for the configured
instance and turns raw search hits into highlighted ``SearchResult``
entries.

API endpoints used:
    POST /api/user/login   -> {"token": ...}
    GET  /api/app          -> [{id, name, acronym, fields, layout}, ...]
    POST /api/search       -> {"count": n, "results": {appId: [record, ...]}}
"""

import time
from typing import Any

import httpx
from pydantic import ValidationError

from .config import IntegrationOptions, Settings
from .directory import AppDirectory
from .errors import (
    AuthenticationError,
    DirectoryUnavailableError,
    ParseError,
    ProtocolError,
    SwimlaneError,
    TransportError,
)
from .highlight import contains_term, present_value
from .logging import get_context_logger, log_api_request, log_cache_refresh
from .models import SearchPage, SearchResult
from .tokens import AccessTokenCache
from .transport import build_http_client

logger = get_context_logger(__name__)


class SwimlaneClient:
    """Client for one or more Swimlane instances sharing a token cache.

    The application directory tracks a single instance at a time; pointing
    the client at a different URL rebuilds it from scratch.
    """

    # Total requests per logical call, including the one retry after a 401
    MAX_REQUEST_ATTEMPTS = 2

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        """Initialize the client.

        Args:
            http_client: Pre-built HTTP client (the caller keeps ownership)
            settings: Settings used when this client builds its own HTTP client
        """
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._settings = settings
        self.tokens = AccessTokenCache()
        self.directory = AppDirectory()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = build_http_client(self._settings)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "SwimlaneClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================
    # Authentication
    # =========================

    @staticmethod
    def _token_key(options: IntegrationOptions) -> str:
        return AccessTokenCache.key_for(options.url, options.username, options.password)

    async def get_access_token(self, options: IntegrationOptions) -> str:
        """Return the cached token for these credentials, logging in if needed."""
        token = self.tokens.get(self._token_key(options))
        if token is not None:
            return token
        return await self.generate_access_token(options)

    async def generate_access_token(self, options: IntegrationOptions) -> str:
        """Log in and cache the returned token.

        Raises:
            AuthenticationError: If login fails for any reason
        """
        url = f"{options.url}/api/user/login"
        try:
            response = await self._send(
                "POST",
                url,
                json={"username": options.username, "password": options.password},
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Login request failed: {e}",
                extra={"username": options.username},
            )
            raise AuthenticationError(
                "Error retrieving Swimlane API token", username=options.username
            ) from e

        body = _json_or_text(response)
        token = body.get("token") if isinstance(body, dict) else None
        if response.status_code != 200 or not token:
            logger.error(
                "Login rejected",
                extra={"username": options.username, "status_code": response.status_code},
            )
            raise AuthenticationError(
                "Error retrieving Swimlane API token",
                username=options.username,
                body=body,
                status_code=response.status_code if response.status_code != 200 else None,
            )

        self.tokens.set(self._token_key(options), token)
        return token

    # =========================
    # Request execution
    # =========================

    async def _send(self, method: str, url: str, attempt: int = 0, **kwargs) -> httpx.Response:
        start = time.monotonic()
        status_code = None
        try:
            response = await self.http_client.request(method, url, **kwargs)
            status_code = response.status_code
            return response
        finally:
            log_api_request(
                method, url, status_code, (time.monotonic() - start) * 1000, attempt
            )

    async def execute_request(
        self,
        options: IntegrationOptions,
        method: str,
        path: str,
        **kwargs,
    ) -> httpx.Response:
        """Issue an authenticated request, refreshing the token once on 401.

        A 401 evicts the cached token and the request is retried with a token
        from the cache (another call may already have refreshed it) or a new
        login. The second 401 in a row is returned to the caller.

        Raises:
            AuthenticationError: If a token cannot be obtained
            httpx.HTTPError: On transport failure
        """
        url = f"{options.url}{path}"
        extra_headers = kwargs.pop("headers", None) or {}

        for attempt in range(self.MAX_REQUEST_ATTEMPTS):
            token = await self.get_access_token(options)
            headers = {**extra_headers, "Authorization": f"Bearer {token}"}
            response = await self._send(method, url, attempt=attempt, headers=headers, **kwargs)

            if response.status_code == 401 and attempt + 1 < self.MAX_REQUEST_ATTEMPTS:
                logger.info("Access token rejected, requesting a new one")
                self.tokens.evict(self._token_key(options))
                continue

            return response

        raise RuntimeError("MAX_REQUEST_ATTEMPTS must be at least 1")

    def handle_request_error(
        self,
        action: str,
        response: httpx.Response | None = None,
        error: Exception | None = None,
    ) -> Any:
        """Translate a transport error or non-200 response into an exception.

        Returns:
            The parsed JSON body of a successful response

        Raises:
            TransportError: ``error`` was given
            ProtocolError: Status other than 200
            ParseError: Successful status with a non-JSON body
        """
        if error is not None:
            logger.error(
                f"HTTP Error: {action}",
                extra={
                    "error": str(error),
                    "status_code": response.status_code if response is not None else None,
                },
            )
            raise TransportError(f"HTTP Error: {action}") from error

        body = _json_or_text(response)
        if response.status_code != 200:
            logger.error(
                f"Error: {action}",
                extra={"status_code": response.status_code, "body": body},
            )
            raise ProtocolError(f"Error: {action}", status_code=response.status_code, body=body)

        if isinstance(body, str):
            raise ParseError(f"Invalid JSON response: {action}", body=body)
        return body

    async def request(
        self,
        options: IntegrationOptions,
        method: str,
        path: str,
        *,
        action: str,
        **kwargs,
    ) -> Any:
        """Execute a request and return its parsed JSON body."""
        try:
            response = await self.execute_request(options, method, path, **kwargs)
        except httpx.HTTPError as e:
            return self.handle_request_error(action, error=e)
        return self.handle_request_error(action, response=response)

    # =========================
    # Application cache
    # =========================

    async def cache_apps(self, options: IntegrationOptions) -> None:
        """Build the application directory for ``options.url`` if needed.

        A no-op when the directory already serves this URL. Otherwise all
        application, field and layout state is cleared and refetched.

        Raises:
            SwimlaneError: If the application list cannot be fetched or parsed
        """
        directory = self.directory
        if not directory.needs_reload(options.url):
            return

        logger.info("Caching Swimlane Applications", extra={"instance": options.url})
        generation = directory.begin_rebuild(options.url)
        start = time.monotonic()
        success = False
        error = None

        try:
            apps = await self.request(options, "GET", "/api/app", action="Retrieving Apps")
            if not isinstance(apps, list):
                raise ParseError("Unexpected application list payload", body=apps)

            if directory.generation != generation:
                # Superseded by a rebuild for another instance
                logger.info("Discarding application list for a replaced instance")
                return

            try:
                directory.load(apps)
            except (KeyError, TypeError, ValidationError) as e:
                raise ParseError(f"Malformed application definition: {e}", body=None) from e
            success = True
        except SwimlaneError as e:
            error = e.detail
            raise
        finally:
            if directory.generation == generation:
                directory.finish_rebuild(success)
                log_cache_refresh(
                    options.url,
                    len(directory.apps),
                    directory.field_count,
                    time.monotonic() - start,
                    success,
                    error,
                )

    # =========================
    # Search
    # =========================

    async def search(self, entity_value: str, options: IntegrationOptions) -> SearchPage:
        """Search the configured applications for ``entity_value``.

        Returns:
            Matching fields plus the server-reported record count. Empty
            while the application directory is being rebuilt.

        Raises:
            DirectoryUnavailableError: The last directory rebuild failed
            ConfigurationError: An application name does not resolve
            SwimlaneError: The search request failed
        """
        directory = self.directory
        if directory.caching_failed:
            raise DirectoryUnavailableError(
                "Swimlane applications could not be cached; searches are disabled "
                "until the application cache is rebuilt"
            )
        if directory.is_caching:
            logger.debug("Application cache rebuild in progress, skipping search")
            return SearchPage()

        app_ids = directory.resolve_app_ids(options.application_names)
        body = await self.request(
            options,
            "POST",
            "/api/search",
            action="Searching Swimlane",
            json={
                "applicationIds": app_ids,
                "keywords": entity_value,
                "pageSize": options.max_results,
            },
        )
        return self.build_search_page(entity_value, app_ids, body, options)

    def build_search_page(
        self,
        entity_value: str,
        app_ids: list[str],
        body: Any,
        options: IntegrationOptions,
    ) -> SearchPage:
        """Translate a raw ``/api/search`` body into highlighted results."""
        if not isinstance(body, dict) or not isinstance(body.get("results", {}), dict):
            raise ParseError("Unexpected search response payload", body=body)

        results_by_app = body.get("results") or {}
        page = SearchPage(total_count=body.get("count") or 0)

        for app_id in app_ids:
            records = results_by_app.get(app_id)
            if not isinstance(records, list):
                continue
            app = self.directory.get_app(app_id)
            if app is None:
                logger.debug(f"Skipping records for unknown application {app_id}")
                continue

            for record in records:
                if not isinstance(record, dict) or "id" not in record:
                    logger.debug(f"Skipping malformed record in application {app_id}")
                    continue
                values = record.get("values") or {}
                for field_id, value in values.items():
                    if not contains_term(value, entity_value):
                        continue

                    field = self.directory.get_field(app_id, field_id)
                    if field is None or field.field_name is None:
                        # Legacy records can reference deleted fields
                        logger.debug(
                            f"Skipping unknown field {field_id} in application {app_id}"
                        )
                        continue

                    try:
                        result = SearchResult(
                            app_id=app_id,
                            app_name=app.name,
                            app_acronym=app.acronym,
                            field_id=field_id,
                            field_name=field.field_name,
                            layout_path=field.layout_path,
                            field_value=present_value(value, entity_value),
                            record_tracking_id=record.get("trackingId"),
                            record_created_date=record.get("createdDate"),
                            record_modified_date=record.get("modifiedDate"),
                            record_total_time_spent=record.get("totalTimeSpent"),
                            record_id=record["id"],
                            record_url=record_url(options.url, app_id, record["id"]),
                        )
                    except ValidationError as e:
                        logger.debug(
                            f"Skipping record {record['id']} in application {app_id}: {e}"
                        )
                        continue
                    page.results.append(result)

        return page


def record_url(host: str, app_id: str, record_id: str) -> str:
    """Browser URL of a Swimlane record."""
    return f"{host}/record/{app_id}/{record_id}"


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
