from datetime import datetime, timedelta

import pytest

from pixelprobe.storage.errors import ConstraintViolation
from pixelprobe.storage.memory import MemoryStore
from pixelprobe.storage.models import ImageOperation, OperationStatus, OperationType


def make_op(user_id: str, operation_type=OperationType.UPLOAD, *, age_minutes: int = 0, **kwargs):
    op = ImageOperation.new(
        user_id,
        operation_type,
        output_url=f"http://cdn.test/{user_id}",
        output_key=f"uploads/{user_id}/file.png",
        **kwargs,
    )
    op.created_at = datetime.utcnow() - timedelta(minutes=age_minutes)
    return op


def test_create_and_get_scoped_to_owner():
    store = MemoryStore()
    op = store.create_image_operation(make_op("alice"))

    assert store.get_image_operation(op.id) is op
    assert store.get_image_operation(op.id, user_id="alice") is op
    assert store.get_image_operation(op.id, user_id="bob") is None
    assert store.get_image_operation("missing") is None


def test_duplicate_id_violates_constraint():
    store = MemoryStore()
    op = store.create_image_operation(make_op("alice"))

    with pytest.raises(ConstraintViolation) as excinfo:
        store.create_image_operation(op)
    assert excinfo.value.detail == {"field": "id", "value": op.id}


def test_list_is_newest_first_and_paginated():
    store = MemoryStore()
    ops = [store.create_image_operation(make_op("alice", age_minutes=age)) for age in (30, 10, 20)]
    store.create_image_operation(make_op("bob"))

    first_page, total = store.list_image_operations("alice", limit=2, offset=0)
    second_page, _ = store.list_image_operations("alice", limit=2, offset=2)

    assert total == 3
    assert [op.id for op in first_page] == [ops[1].id, ops[2].id]
    assert [op.id for op in second_page] == [ops[0].id]


def test_list_filters_by_operation_type():
    store = MemoryStore()
    store.create_image_operation(make_op("alice", OperationType.UPLOAD))
    generated = store.create_image_operation(
        make_op("alice", OperationType.GENERATE, prompt="a lighthouse", aspect_ratio="16:9")
    )

    items, total = store.list_image_operations("alice", operation_type=OperationType.GENERATE)

    assert total == 1
    assert items == [generated]


def test_update_tracks_status_transitions():
    store = MemoryStore()
    op = store.create_image_operation(make_op("alice", OperationType.UPSCALE))
    assert op.status is OperationStatus.PENDING

    updated = store.update_image_operation(op.id, status="failed", error_message="timeout")

    assert updated.status is OperationStatus.FAILED
    assert updated.error_message == "timeout"
    assert updated.updated_at >= op.updated_at
    assert store.get_image_operation(op.id) is updated


def test_update_unknown_record_returns_none():
    assert MemoryStore().update_image_operation("missing", status="completed") is None


def test_update_rejects_immutable_fields():
    store = MemoryStore()
    op = store.create_image_operation(make_op("alice"))
    with pytest.raises(ValueError):
        store.update_image_operation(op.id, user_id="mallory")


def test_delete_only_removes_owned_records():
    store = MemoryStore()
    mine = store.create_image_operation(make_op("alice"))
    theirs = store.create_image_operation(make_op("bob"))

    deleted = store.delete_image_operations("alice", [mine.id, theirs.id, mine.id])

    assert deleted == [mine]
    assert store.get_image_operation(theirs.id) is theirs
    assert store.get_image_operation(mine.id) is None
