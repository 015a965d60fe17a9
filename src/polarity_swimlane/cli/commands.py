"""Swimlane CLI commands.

Usage:
    polarity-swimlane cache-apps --url https://swimlane.local -u admin -p secret
    polarity-swimlane search 8.8.8.8 --applications "Incidents,Phishing Triage"
    polarity-swimlane lookup 8.8.8.8 user@example.com --num-tags 3
    polarity-swimlane details doc-1 --entity 8.8.8.8 --elasticsearch-url https://es.local:9200
"""

import asyncio
import json
import sys

import click
from pydantic import ValidationError

from ..client import SwimlaneClient
from ..config import IntegrationOptions
from ..elastic import ElasticsearchClient
from ..errors import SwimlaneError
from ..logging import setup_logging
from ..lookup import LookupOrchestrator, validate_options


_CONNECTION_OPTIONS = [
    click.option("--url", envvar="SWIMLANE_URL", required=True, help="Swimlane URL including https://"),
    click.option("--username", "-u", envvar="SWIMLANE_USERNAME", required=True, help="Swimlane username"),
    click.option(
        "--password", "-p", envvar="SWIMLANE_PASSWORD", required=True, help="Swimlane password"
    ),
    click.option(
        "--applications",
        "-a",
        envvar="SWIMLANE_APPLICATIONS",
        default="",
        help="Comma-delimited, case-insensitive list of applications to search",
    ),
    click.option("--max-results", type=int, default=10, show_default=True, help="Search page size"),
]


def connection_options(func):
    """Shared options identifying the Swimlane instance and credentials."""
    for option in reversed(_CONNECTION_OPTIONS):
        func = option(func)
    return func


_ELASTICSEARCH_OPTIONS = [
    click.option(
        "--elasticsearch-url", envvar="SWIMLANE_ELASTICSEARCH_URL", default="",
        help="Search this Elasticsearch mirror instead of the Swimlane API",
    ),
    click.option("--elasticsearch-index", default="records", show_default=True),
    click.option(
        "--elasticsearch-username", envvar="SWIMLANE_ELASTICSEARCH_USERNAME", default="",
        help="Basic auth username for the mirror",
    ),
    click.option(
        "--elasticsearch-password", envvar="SWIMLANE_ELASTICSEARCH_PASSWORD", default="",
        help="Basic auth password for the mirror",
    ),
]


def elasticsearch_options(func):
    """Shared options locating the Elasticsearch mirror."""
    for option in reversed(_ELASTICSEARCH_OPTIONS):
        func = option(func)
    return func


def _build_options(**values) -> IntegrationOptions:
    errors = [error for error in validate_options(values) if error["key"] != "applications"]
    if errors:
        for error in errors:
            click.echo(f"{error['key']}: {error['message']}", err=True)
        sys.exit(2)
    try:
        return IntegrationOptions(**values)
    except ValidationError as e:
        click.echo(f"Invalid options: {e}", err=True)
        sys.exit(2)


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _fail(error: SwimlaneError) -> None:
    click.echo(f"{error.title}: {error.detail}", err=True)
    if error.body:
        click.echo(json.dumps(error.body, indent=2, default=str), err=True)
    sys.exit(1)


@click.command()
@connection_options
def cache_apps(url: str, username: str, password: str, applications: str, max_results: int) -> None:
    """Cache Swimlane applications and list them."""
    setup_logging()
    options = _build_options(
        url=url, username=username, password=password,
        applications=applications, max_results=max_results,
    )

    async def _run():
        async with SwimlaneClient() as client:
            await client.cache_apps(options)
            return [
                {
                    "id": app.id,
                    "name": app.name,
                    "acronym": app.acronym,
                }
                for app in client.directory.apps
            ]

    try:
        apps = asyncio.run(_run())
    except SwimlaneError as e:
        _fail(e)
        return

    click.echo(f"Cached {len(apps)} applications")
    _echo_json(apps)


@click.command()
@click.argument("entity")
@connection_options
def search(
    entity: str, url: str, username: str, password: str, applications: str, max_results: int
) -> None:
    """Search the configured applications for ENTITY."""
    setup_logging()
    options = _build_options(
        url=url, username=username, password=password,
        applications=applications, max_results=max_results,
    )

    async def _run():
        async with SwimlaneClient() as client:
            await client.cache_apps(options)
            return await client.search(entity, options)

    try:
        page = asyncio.run(_run())
    except SwimlaneError as e:
        _fail(e)
        return

    click.echo(f"{len(page.results)} matching fields ({page.total_count} records reported)")
    _echo_json([result.to_render() for result in page.results])


@click.command()
@click.argument("entities", nargs=-1, required=True)
@connection_options
@elasticsearch_options
@click.option("--num-tags", type=int, default=5, show_default=True, help="Summary tags per entity")
def lookup(
    entities: tuple[str, ...],
    url: str,
    username: str,
    password: str,
    applications: str,
    max_results: int,
    num_tags: int,
    elasticsearch_url: str,
    elasticsearch_index: str,
    elasticsearch_username: str,
    elasticsearch_password: str,
) -> None:
    """Run a full lookup for one or more ENTITIES."""
    setup_logging()
    options = _build_options(
        url=url, username=username, password=password,
        applications=applications, max_results=max_results, num_tags=num_tags,
        search_elasticsearch=bool(elasticsearch_url),
        elasticsearch_url=elasticsearch_url,
        elasticsearch_index=elasticsearch_index,
        elasticsearch_username=elasticsearch_username,
        elasticsearch_password=elasticsearch_password,
    )

    async def _run():
        async with SwimlaneClient() as client:
            elastic = ElasticsearchClient(client.directory, http_client=client.http_client)
            orchestrator = LookupOrchestrator(client, elastic=elastic)
            return await orchestrator.do_lookup(list(entities), options)

    try:
        results = asyncio.run(_run())
    except SwimlaneError as e:
        _fail(e)
        return

    _echo_json([result.model_dump(exclude_none=True) for result in results])


@click.command()
@click.argument("doc_ids", nargs=-1, required=True)
@click.option("--entity", "-e", required=True, help="Entity value to highlight")
@connection_options
@elasticsearch_options
@click.option(
    "--detail-fields", default="",
    help="Comma-delimited field names to keep; all fields when empty",
)
@click.option("--highlight/--no-highlight", default=True, show_default=True)
def details(
    doc_ids: tuple[str, ...],
    entity: str,
    url: str,
    username: str,
    password: str,
    applications: str,
    max_results: int,
    elasticsearch_url: str,
    elasticsearch_index: str,
    elasticsearch_username: str,
    elasticsearch_password: str,
    detail_fields: str,
    highlight: bool,
) -> None:
    """Fetch highlighted Elasticsearch details for DOC_IDS."""
    setup_logging()
    options = _build_options(
        url=url, username=username, password=password,
        applications=applications, max_results=max_results,
        search_elasticsearch=True,
        elasticsearch_url=elasticsearch_url,
        elasticsearch_index=elasticsearch_index,
        elasticsearch_username=elasticsearch_username,
        elasticsearch_password=elasticsearch_password,
        detail_fields=detail_fields,
        highlight_enabled=highlight,
    )

    async def _run():
        async with SwimlaneClient() as client:
            await client.cache_apps(options)
            elastic = ElasticsearchClient(client.directory, http_client=client.http_client)
            orchestrator = LookupOrchestrator(client, elastic=elastic)
            return await orchestrator.get_details(list(doc_ids), entity, options)

    try:
        results = asyncio.run(_run())
    except SwimlaneError as e:
        _fail(e)
        return

    _echo_json([detail.to_render() for detail in results])
