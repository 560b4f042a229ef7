"""Turn method and step identifiers into readable descriptions."""

from __future__ import annotations

import re

_ARGS = re.compile(r"(\(.*\)|\[.*\])\s*$")
_PATH_SEPARATORS = re.compile(r"::|[.:]")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"(?<=[A-Z])(?=[A-Z][a-z])")


def without_arguments(identifier: str) -> str:
    """Drop a trailing argument list or parameter id.

    ``stepThree(String)`` -> ``stepThree``, ``test_total[eur-2]`` -> ``test_total``.
    """
    return _ARGS.sub("", identifier.strip())


def humanize(identifier: str) -> str:
    """Convert ``stepThatSucceeds`` or ``step_that_succeeds`` to ``Step that succeeds``.

    Dotted or ``::`` qualified names keep only their last segment. Acronyms
    (``HTTP``) keep their case.
    """
    name = without_arguments(identifier)
    segments = [part for part in _PATH_SEPARATORS.split(name) if part]
    name = segments[-1] if segments else ""
    name = name.replace("_", " ").replace("-", " ")
    name = _ACRONYM_BOUNDARY.sub(" ", _CAMEL_BOUNDARY.sub(" ", name))
    words = name.split()
    if not words:
        return identifier.strip()
    converted = [w if len(w) > 1 and w.isupper() else w.lower() for w in words]
    first = converted[0]
    converted[0] = first[:1].upper() + first[1:]
    return " ".join(converted)
