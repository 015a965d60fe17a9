"""Field value presentation: truncation, HTML escaping and match highlighting.

Shared by the Swimlane search client and the Elasticsearch backend.
"""

import html
import re

MAX_FIELD_LENGTH = 2000
TRUNCATION_MARKER = "..."

MATCH_OPEN = '<span class="match">'
MATCH_CLOSE = "</span>"


def contains_term(value: object, term: str) -> bool:
    """Case-insensitive substring test; non-strings never match."""
    return isinstance(value, str) and bool(term) and term.lower() in value.lower()


def truncate(value: str, max_length: int = MAX_FIELD_LENGTH) -> str:
    """Cut a value to ``max_length`` characters, marking the cut."""
    if len(value) <= max_length:
        return value
    return value[:max_length] + TRUNCATION_MARKER


def escape(value: str) -> str:
    return html.escape(value, quote=True)


def highlight_matches(value: str, term: str) -> str:
    """HTML-escape ``value`` and wrap every case-insensitive ``term`` in a match span.

    Matching runs on the raw text, so the escaped output never has a span
    inside an entity reference.
    """
    if not term:
        return escape(value)
    pattern = re.compile(re.escape(term), re.IGNORECASE)
    parts = []
    position = 0
    for match in pattern.finditer(value):
        parts.append(escape(value[position:match.start()]))
        parts.append(f"{MATCH_OPEN}{escape(match.group(0))}{MATCH_CLOSE}")
        position = match.end()
    parts.append(escape(value[position:]))
    return "".join(parts)


def present_value(value: str, term: str, max_length: int = MAX_FIELD_LENGTH) -> str:
    """Truncate a matched field value, then escape and highlight it."""
    return highlight_matches(truncate(value, max_length), term)


def normalize_es_fragment(fragment: str, pre_tag: str, post_tag: str) -> str:
    """Escape an Elasticsearch highlight fragment and restore its match tags.

    Elasticsearch wraps matches in ``pre_tag``/``post_tag`` around raw
    source text; everything else in the fragment is escaped so only the
    match spans are markup.
    """
    parts = []
    for index, piece in enumerate(fragment.split(pre_tag)):
        if index == 0:
            parts.append(escape(piece))
            continue
        matched, _, rest = piece.partition(post_tag)
        parts.append(f"{MATCH_OPEN}{escape(matched)}{MATCH_CLOSE}{escape(rest)}")
    return "".join(parts)
