"""Tests for HookResult factories, merging and serialization."""

import json

from flowgate.lib.result import (
    CriteriaStatus,
    HookResult,
    LoopState,
    Reason,
    SimilarComponent,
    merge_results,
)


class TestFactories:
    def test_allow(self):
        result = HookResult.allow(Reason.TASK_ACTIVE, task={"id": "T1"})

        assert (result.allowed, result.blocked, result.warning) == (True, False, False)
        assert result.task == {"id": "T1"}

    def test_warn(self):
        result = HookResult.warn(Reason.WARN_ONLY, "careful")

        assert (result.allowed, result.blocked, result.warning) == (True, False, True)

    def test_block(self):
        result = HookResult.block(Reason.NO_ACTIVE_TASK, "start a task")

        assert (result.allowed, result.blocked) == (False, True)
        assert result.message == "start a task"


class TestMerge:
    def test_block_in_base_wins(self):
        base = HookResult.block(Reason.NO_ACTIVE_TASK, "no task")

        assert merge_results(base, HookResult.warn(Reason.SIMILAR_COMPONENT_WARNING, "x")) is base

    def test_block_in_extra_escalates(self):
        base = HookResult.allow(Reason.TASK_ACTIVE, task={"id": "T1"})
        best = SimilarComponent(name="Button", similarity=100, source="component-index")
        extra = HookResult.block(Reason.COMPONENT_EXISTS, "exists", best_match=best)

        merged = merge_results(base, extra)

        assert merged.blocked is True
        assert merged.allowed is False
        assert merged.reason == Reason.COMPONENT_EXISTS
        assert merged.message == "exists"
        assert merged.task == {"id": "T1"}
        assert merged.best_match is best

    def test_warning_beats_allow(self):
        base = HookResult.allow(Reason.TASK_ACTIVE, task={"id": "T1"})
        extra = HookResult.warn(Reason.SIMILAR_COMPONENT_WARNING, "similar")

        merged = merge_results(base, extra)

        assert merged.warning is True
        assert merged.allowed is True
        assert merged.reason == Reason.SIMILAR_COMPONENT_WARNING

    def test_two_warnings_keep_base_reason_and_both_messages(self):
        base = HookResult.warn(Reason.WARN_ONLY, "no task")
        extra = HookResult.warn(Reason.COMPONENT_EXISTS_WARNING, "exists")

        merged = merge_results(base, extra)

        assert merged.reason == Reason.WARN_ONLY
        assert merged.message == "no task\n\nexists"

    def test_allow_plus_allow(self):
        merged = merge_results(
            HookResult.allow(Reason.TASK_ACTIVE), HookResult.allow(Reason.NOT_COMPONENT_PATH)
        )

        assert merged.reason == Reason.TASK_ACTIVE
        assert merged.warning is False
        assert merged.message is None


def test_to_json_is_plain_data():
    result = HookResult.block(
        Reason.CRITERIA_INCOMPLETE,
        "not yet",
        can_exit=False,
        criteria_status=CriteriaStatus(total=2, completed=1),
        loop_state=LoopState.CRITERIA_INCOMPLETE,
    )

    data = json.loads(json.dumps(result.to_json()))

    assert data["reason"] == "criteria_incomplete"
    assert data["loop_state"] == "criteria_incomplete"
    assert data["criteria_status"]["all_complete"] is True
    assert data["can_exit"] is False
