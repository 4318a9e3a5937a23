"""Naming helpers for deriving metric names from record field names."""

import re

_SEPARATORS = re.compile(r"[\s\-.]+")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """Convert an identifier to the lowercase snake_case used for metric names.

    Examples:
        >>> to_snake_case("SecondsFromStart")
        'seconds_from_start'
        >>> to_snake_case("HTTPRequestCount")
        'http_request_count'
        >>> to_snake_case("request_count")
        'request_count'
    """
    value = _SEPARATORS.sub("_", name.strip())
    value = _ACRONYM_BOUNDARY.sub(r"\1_\2", value)
    value = _WORD_BOUNDARY.sub(r"\1_\2", value)
    value = _REPEATED_UNDERSCORES.sub("_", value)
    return value.strip("_").lower()
