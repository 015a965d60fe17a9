"""CLI entry points for polarity-swimlane.

Provides command-line tools for:
- Warming and inspecting the application cache
- Searching a Swimlane instance for a single entity
- Running full lookups with summary tags
- Fetching highlighted details from the Elasticsearch mirror
"""

import click

from .. import __version__
from .commands import cache_apps, details, lookup, search


@click.group()
@click.version_option(version=__version__, prog_name="polarity-swimlane")
def main():
    """polarity-swimlane - Swimlane enrichment integration.

    Connection options can be given as flags or through SWIMLANE_URL,
    SWIMLANE_USERNAME, SWIMLANE_PASSWORD and SWIMLANE_APPLICATIONS.
    """
    pass


main.add_command(cache_apps, name="cache-apps")
main.add_command(search, name="search")
main.add_command(lookup, name="lookup")
main.add_command(details, name="details")


if __name__ == "__main__":
    main()
