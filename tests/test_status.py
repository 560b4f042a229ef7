"""Tests for the ranked Status enum."""

from __future__ import annotations

import pytest

from steptrail.errors import InvalidArgumentError
from steptrail.model.status import Status


class TestStatusOrdering:
    def test_declared_from_best_to_worst(self):
        assert list(Status) == [
            Status.SUCCESS,
            Status.IGNORED,
            Status.SKIPPED,
            Status.PENDING,
            Status.FAILURE,
            Status.ERROR,
        ]

    def test_comparisons_follow_rank(self):
        assert Status.SUCCESS < Status.IGNORED < Status.SKIPPED < Status.PENDING < Status.FAILURE < Status.ERROR
        assert Status.ERROR > Status.FAILURE
        assert Status.PENDING >= Status.PENDING
        assert Status.IGNORED <= Status.SKIPPED

    def test_max_is_worst(self):
        assert max([Status.SKIPPED, Status.ERROR, Status.SUCCESS]) is Status.ERROR

    def test_severity(self):
        assert Status.SUCCESS.severity == 0
        assert Status.ERROR.severity == 5

    def test_error_ranks_worse_than_failure(self):
        assert Status.ERROR.severity > Status.FAILURE.severity

    def test_ordering_against_plain_string_raises(self):
        # "success" sorts after "error" alphabetically
        with pytest.raises(TypeError):
            Status.SUCCESS < "error"
        with pytest.raises(TypeError):
            Status.ERROR >= "aaa"
        with pytest.raises(TypeError):
            "zzz" > Status.SUCCESS

    def test_equality_with_value_still_holds(self):
        assert Status.SUCCESS == "success"


class TestStatusFlags:
    def test_is_successful(self):
        assert Status.SUCCESS.is_successful
        assert not Status.IGNORED.is_successful

    @pytest.mark.parametrize("status", [Status.FAILURE, Status.ERROR])
    def test_failing(self, status):
        assert status.is_failing

    @pytest.mark.parametrize("status", [Status.SUCCESS, Status.IGNORED, Status.SKIPPED, Status.PENDING])
    def test_not_failing(self, status):
        assert not status.is_failing


class TestStatusParse:
    def test_member_passthrough(self):
        assert Status.parse(Status.PENDING) is Status.PENDING

    def test_case_insensitive(self):
        assert Status.parse("FAILURE") is Status.FAILURE
        assert Status.parse(" Success ") is Status.SUCCESS

    def test_unknown_value(self):
        with pytest.raises(InvalidArgumentError, match="Unknown status"):
            Status.parse("broken")

    def test_non_string(self):
        with pytest.raises(InvalidArgumentError):
            Status.parse(3)

    def test_str_is_value(self):
        assert str(Status.SKIPPED) == "skipped"
