"""Structural errors raised by the step tree and outcome model."""

from __future__ import annotations


class StepTrailError(Exception):
    """Base class for steptrail errors."""


class InvalidStateError(StepTrailError):
    """An operation was attempted on a tree or outcome in the wrong state.

    Raised when recording into a finished outcome or closed group, or when
    closing a group while none is open. Always a caller bug; never retried.
    """


class InvalidArgumentError(StepTrailError, ValueError):
    """Malformed input at a constructor boundary (empty description, None entry)."""


class TestMethodNotFoundError(StepTrailError, LookupError):
    """No test method with the requested name exists on the test class."""

    __test__ = False  # keep pytest from collecting this class
