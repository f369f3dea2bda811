from datetime import timedelta

import pytest

from listseerr.core.errors import InvalidBatchIdError, InvalidExecutionStatusTransitionError
from listseerr.models.processing_execution import (
    BatchId,
    ExecutionStatus,
    ProcessingExecution,
    TriggerType,
)


def _running():
    return ProcessingExecution.start(list_id=3, batch_id=BatchId.generate(TriggerType.MANUAL),
                                     trigger_type=TriggerType.MANUAL)


def test_start_is_running_and_unsaved():
    execution = _running()
    assert execution.id is None
    assert execution.status == ExecutionStatus.RUNNING
    assert execution.completed_at is None
    assert execution.duration() is None


def test_mark_as_success_records_tallies():
    execution = _running()
    execution.mark_as_success(10, 4, 1, 3, 2)
    assert execution.status == ExecutionStatus.SUCCESS
    assert execution.completed_at is not None
    assert (execution.items_found, execution.items_requested, execution.items_failed) == (10, 4, 1)
    assert execution.items_skipped_available == 3
    assert execution.items_skipped_previously_requested == 2
    assert execution.duration() >= timedelta(0)


def test_mark_as_error_zeroes_counts():
    execution = _running()
    execution.mark_as_error("Trakt API error: HTTP 500")
    assert execution.status == ExecutionStatus.ERROR
    assert execution.error_message == "Trakt API error: HTTP 500"
    assert execution.items_found == 0
    assert execution.items_requested == 0


@pytest.mark.parametrize("finish", [
    lambda e: e.mark_as_success(1, 1, 0, 0, 0),
    lambda e: e.mark_as_error("boom"),
])
def test_terminal_states_are_final(finish):
    execution = _running()
    finish(execution)
    with pytest.raises(InvalidExecutionStatusTransitionError):
        execution.mark_as_success(1, 1, 0, 0, 0)
    with pytest.raises(InvalidExecutionStatusTransitionError):
        execution.mark_as_error("again")


def test_batch_id_generation_encodes_trigger():
    batch_id = BatchId.generate(TriggerType.SCHEDULED)
    trigger, timestamp, suffix = str(batch_id).split("-")
    assert trigger == "scheduled"
    assert timestamp.isdigit()
    assert len(suffix) == BatchId.RANDOM_LENGTH
    assert batch_id.trigger_type == TriggerType.SCHEDULED
    assert BatchId.from_string(str(batch_id)) == batch_id


def test_batch_ids_are_unique():
    ids = {str(BatchId.generate(TriggerType.MANUAL)) for _ in range(50)}
    assert len(ids) == 50


def test_batch_id_timestamp():
    batch_id = BatchId.from_string("manual-1700000000000-abc1234")
    assert batch_id.timestamp.year == 2023


@pytest.mark.parametrize("value", [
    "",
    "manual-123",
    "weekly-1700000000000-abc1234",
    "manual-notanumber-abc1234",
    "manual-1700000000000-",
    "manual-1700000000000-abc-extra",
])
def test_batch_id_rejects_malformed_values(value):
    with pytest.raises(InvalidBatchIdError):
        BatchId.from_string(value)
