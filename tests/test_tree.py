"""Tests for the incremental step tree builder."""

from __future__ import annotations

import pytest

from steptrail.errors import InvalidArgumentError, InvalidStateError
from steptrail.model.status import Status
from steptrail.model.steps import StepResult
from steptrail.model.tree import StepTreeBuilder


class TestRecording:
    def test_leaf_goes_to_root_without_group(self):
        tree = StepTreeBuilder()
        tree.record_leaf("A", Status.SUCCESS)
        assert [s.description for s in tree.roots] == ["A"]

    def test_leaf_goes_into_open_group(self):
        tree = StepTreeBuilder()
        group = tree.open_group("Group")
        tree.record_leaf("A", Status.SUCCESS)
        assert len(tree.roots) == 1
        assert [c.description for c in group.children] == ["A"]

    def test_nested_groups(self):
        tree = StepTreeBuilder()
        outer = tree.open_group("Outer")
        inner = tree.open_group("Inner")
        assert tree.depth == 2
        assert tree.current_group is inner
        tree.record_leaf("Deep", Status.FAILURE)
        assert tree.close_group() is Status.FAILURE
        assert tree.current_group is outer
        tree.record_leaf("After", Status.SUCCESS)
        assert tree.close_group() is Status.FAILURE
        assert tree.depth == 0
        assert [c.description for c in outer.children] == ["Inner", "After"]

    def test_record_prebuilt_step(self):
        tree = StepTreeBuilder()
        assert tree.record(StepResult.leaf("A", Status.SKIPPED)) is Status.SKIPPED

    def test_record_open_group_rejected(self):
        tree = StepTreeBuilder()
        with pytest.raises(InvalidArgumentError, match="still open"):
            tree.record(StepResult.group("Open"))

    def test_record_non_step_rejected(self):
        with pytest.raises(InvalidArgumentError):
            StepTreeBuilder().record(None)  # type: ignore[arg-type]

    def test_roots_snapshot(self):
        tree = StepTreeBuilder()
        tree.record_leaf("A", Status.SUCCESS)
        snapshot = tree.roots
        tree.record_leaf("B", Status.SUCCESS)
        assert len(snapshot) == 1


class TestCloseGroup:
    def test_close_without_open_group(self):
        with pytest.raises(InvalidStateError, match="no open step group"):
            StepTreeBuilder().close_group()

    def test_closed_group_rejects_children(self):
        tree = StepTreeBuilder()
        group = tree.open_group("Group")
        tree.close_group()
        with pytest.raises(InvalidStateError):
            group.append(StepResult.leaf("Late", Status.SUCCESS))

    def test_empty_group_closes_to_success(self):
        tree = StepTreeBuilder()
        tree.open_group("Empty")
        assert tree.close_group() is Status.SUCCESS


class TestSeal:
    def test_recording_after_seal_fails(self):
        tree = StepTreeBuilder()
        tree.seal()
        with pytest.raises(InvalidStateError, match="already finished"):
            tree.record_leaf("A", Status.SUCCESS)
        with pytest.raises(InvalidStateError):
            tree.open_group("G")
        with pytest.raises(InvalidStateError):
            tree.close_group()

    def test_seal_with_open_group_fails(self):
        tree = StepTreeBuilder()
        tree.open_group("Unfinished")
        with pytest.raises(InvalidStateError, match="Unfinished"):
            tree.seal()
        assert not tree.is_sealed

    def test_seal_is_idempotent(self):
        tree = StepTreeBuilder()
        tree.seal()
        tree.seal()
        assert tree.is_sealed
