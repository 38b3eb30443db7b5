"""Input scrubbing and injection-pattern rejection for free-text request fields.

The patterns are a defense-in-depth heuristic. They reject legitimate text
too (a username containing "select", an address with a semicolon), which is
why they only run on the fields a request schema lists in ``text_fields``.
Parameterized queries in the credential store remain the real protection.

Markup is escaped rather than stripped: the stored text keeps what the user
typed and renders as text.
"""

import html
import re
from collections.abc import Iterable, Mapping

from bitebox.core.errors import SuspiciousInputError
from bitebox.schemas.auth import GuardedRequest

SQL_INJECTION_PATTERNS = (
    re.compile(
        r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|FETCH|DECLARE|TRUNCATE)\b",
        re.IGNORECASE,
    ),
    re.compile(r"(;|--|/\*|\*/|xp_|sp_)", re.IGNORECASE),
    re.compile(r"(WAITFOR\s+DELAY|BENCHMARK|SLEEP)", re.IGNORECASE),
)

NOSQL_INJECTION_PATTERNS = (
    re.compile(r"\$where", re.IGNORECASE),
    re.compile(r"\$mapReduce", re.IGNORECASE),
    re.compile(r"\$group", re.IGNORECASE),
    re.compile(r"\$function", re.IGNORECASE),
)

INJECTION_PATTERNS = SQL_INJECTION_PATTERNS + NOSQL_INJECTION_PATTERNS


def clean_text(value: str) -> str:
    """Remove null bytes and surrounding whitespace."""
    return value.replace("\x00", "").strip()


def escape_markup(value: str) -> str:
    """Neutralize HTML/script markup so stored text renders as text."""
    return html.escape(value, quote=True)


def looks_like_injection(value: str) -> bool:
    return any(pattern.search(value) for pattern in INJECTION_PATTERNS)


def check_values(values: Iterable[str]) -> None:
    """Raise SuspiciousInputError if any value matches an injection pattern."""
    for value in values:
        if looks_like_injection(value):
            raise SuspiciousInputError()


def scrub_request(body: GuardedRequest) -> GuardedRequest:
    """
    Return a copy of ``body`` with its text fields cleaned and, except for
    ``verbatim_fields``, HTML-escaped.
    Raises SuspiciousInputError before anything reaches the store.
    """
    updates: dict[str, str] = {}
    for name in body.text_fields:
        value = getattr(body, name, None)
        if isinstance(value, str):
            updates[name] = clean_text(value)
    # Patterns are matched on the cleaned but unescaped text: escaping would add ';'.
    check_values(updates.values())
    scrubbed = {
        name: value if name in body.verbatim_fields else escape_markup(value)
        for name, value in updates.items()
    }
    return body.model_copy(update=scrubbed)


def scrub_query(params: Mapping[str, str]) -> dict[str, str]:
    """Clean every query-string value and reject injection patterns."""
    cleaned = {key: clean_text(value) for key, value in params.items()}
    check_values(cleaned.values())
    return {key: escape_markup(value) for key, value in cleaned.items()}
