"""Titles and requirement tags for tests and steps.

Decorators attach metadata to test methods and step callables; requirement
sources resolve that metadata (or a config mapping) for a test identifier so
it can be handed to :meth:`TestOutcome.for_test`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

from steptrail.errors import TestMethodNotFoundError
from steptrail.model.naming import humanize, without_arguments

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TITLE_ATTR = "__steptrail_title__"
REQUIREMENTS_ATTR = "__steptrail_requirements__"
PENDING_ATTR = "__steptrail_pending__"
IGNORED_ATTR = "__steptrail_ignored__"


def title(text: str) -> Callable[[F], F]:
    """Give a test or step an explicit display title."""

    def decorate(func: F) -> F:
        setattr(func, TITLE_ATTR, text)
        return func

    return decorate


def tests_requirement(*tags: str) -> Callable[[F], F]:
    """Link a test to one or more requirement tags. Stacking accumulates tags."""

    def decorate(func: F) -> F:
        existing: frozenset[str] = getattr(func, REQUIREMENTS_ATTR, frozenset())
        setattr(func, REQUIREMENTS_ATTR, existing | frozenset(tags))
        return func

    return decorate


def pending(func: F) -> F:
    """Mark a step as not yet implemented; the driver records it PENDING without running it."""
    setattr(func, PENDING_ATTR, True)
    return func


def ignored(func: F) -> F:
    """Mark a step as ignored; the driver records it IGNORED without running it."""
    setattr(func, IGNORED_ATTR, True)
    return func


def title_of(func: Callable[..., Any]) -> str:
    """Explicit title of *func*, or its humanized name."""
    explicit = getattr(func, TITLE_ATTR, None)
    if explicit:
        return str(explicit)
    return humanize(getattr(func, "__name__", type(func).__name__))


def is_pending(func: Callable[..., Any]) -> bool:
    return bool(getattr(func, PENDING_ATTR, False))


def is_ignored(func: Callable[..., Any]) -> bool:
    return bool(getattr(func, IGNORED_ATTR, False))


@runtime_checkable
class RequirementSource(Protocol):
    """Supplies the display title and requirement tags for a test identifier."""

    def title_for(self, identifier: str) -> str | None: ...
    def requirements_for(self, identifier: str) -> set[str]: ...


class TestDescription:
    """Reads decorator metadata from a test method on a test class."""

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, test_class: type | None, method_name: str) -> None:
        self.test_class = test_class
        self.method_name = method_name

    @property
    def name(self) -> str:
        annotated = self.annotated_title
        if annotated is not None:
            return annotated
        return humanize(self.method_name)

    def _method_called(self, name: str) -> Callable[..., Any] | None:
        if self.test_class is None:
            return None
        candidate = getattr(self.test_class, name, None)
        return candidate if callable(candidate) else None

    @property
    def test_method(self) -> Callable[..., Any]:
        method = self._method_called(without_arguments(self.method_name))
        if method is None:
            logger.error("No test method called %s was found in %s", self.method_name, self.test_class)
            raise TestMethodNotFoundError(
                f"No test method called {self.method_name} was found in {self.test_class}"
            )
        return method

    @property
    def annotated_title(self) -> str | None:
        value = getattr(self.test_method, TITLE_ATTR, None)
        return str(value) if value else None

    @property
    def annotated_requirements(self) -> set[str]:
        if self.test_class is None:
            return set()
        return set(getattr(self.test_method, REQUIREMENTS_ATTR, frozenset()))

    def method_exists(self) -> bool:
        return self._method_called(without_arguments(self.method_name)) is not None


class ClassRequirementSource:
    """Resolves titles and tags from decorators on the methods of *test_class*."""

    def __init__(self, test_class: type) -> None:
        self._test_class = test_class

    def title_for(self, identifier: str) -> str | None:
        return TestDescription(self._test_class, identifier).name

    def requirements_for(self, identifier: str) -> set[str]:
        return TestDescription(self._test_class, identifier).annotated_requirements


class MappingRequirementSource:
    """Resolves titles and tags from a mapping such as the config ``tests:`` section.

    Values may be objects with ``title``/``requirements`` attributes or plain
    dicts with the same keys.
    """

    def __init__(self, mapping: Mapping[str, Any]) -> None:
        self._mapping = dict(mapping)

    def _field(self, identifier: str, name: str) -> Any:
        entry = self._mapping.get(identifier)
        if entry is None:
            return None
        if isinstance(entry, Mapping):
            return entry.get(name)
        return getattr(entry, name, None)

    def title_for(self, identifier: str) -> str | None:
        value = self._field(identifier, "title")
        return str(value) if value else None

    def requirements_for(self, identifier: str) -> set[str]:
        value = self._field(identifier, "requirements")
        return set(value) if value else set()
