"""Tests for the merge engine state machine."""

from datetime import datetime, timezone

import pytest

from archiver.exceptions import MissingAuthorError, MissingTimestampError
from archiver.models.events import MessageBulkDeleteEvent
from archiver.models.records import (
    FullDeletedRecord,
    FullRecord,
    IncompleteDeletedRecord,
    IncompleteRecord,
    UnknownDeletedRecord,
)
from archiver.services.merge_engine import MergeAction, edit_observed_at, merge

from conftest import (
    CREATED_AT,
    DELETED_AT,
    EDITED_AT,
    OTHER_SESSION_ID,
    SESSION_ID,
    make_create,
    make_delete,
    make_edit,
)


def created(message_id: str = "1", content: str = "hi") -> FullRecord:
    return merge(None, make_create(message_id, content), SESSION_ID).record


def incomplete(message_id: str = "2", content: str = "edited") -> IncompleteRecord:
    return merge(None, make_edit(message_id, content), SESSION_ID).record


class TestObservedAt:
    """Test the edit timestamp fallback."""

    def test_prefers_platform_edit_time(self):
        """Test the platform's edit time is preferred."""
        event = make_edit(received_at=DELETED_AT)
        assert edit_observed_at(event) == EDITED_AT

    def test_falls_back_to_receipt_time(self):
        """Test receipt time is used without an edit time."""
        event = make_edit(edited_timestamp=None, received_at=DELETED_AT)
        assert edit_observed_at(event) == DELETED_AT


class TestNoExistingRecord:
    """Test events for messages the store has never seen."""

    def test_create_inserts_full(self):
        """Test a first creation inserts a full record."""
        result = merge(None, make_create(), SESSION_ID)

        assert result.action is MergeAction.INSERT
        assert isinstance(result.record, FullRecord)
        assert result.record.marked_as_edited is False
        assert len(result.record.iterations) == 1

    def test_edit_upserts_incomplete(self):
        """Test a first edit upserts an incomplete record."""
        result = merge(None, make_edit("2", "edited"), SESSION_ID)

        assert result.action is MergeAction.UPSERT
        assert isinstance(result.record, IncompleteRecord)
        assert result.record.marked_as_edited is True
        assert result.record.author_id == "42"
        assert result.record.timestamp == CREATED_AT
        assert [it.content for it in result.record.iterations] == ["edited"]

    def test_edit_without_author_propagates(self):
        """Test a missing author propagates from the merge."""
        with pytest.raises(MissingAuthorError):
            merge(None, make_edit("2", author_id=None), SESSION_ID)

    def test_edit_without_timestamp_propagates(self):
        """Test a missing timestamp propagates from the merge."""
        with pytest.raises(MissingTimestampError):
            merge(None, make_edit("2", timestamp=None), SESSION_ID)

    def test_delete_upserts_unknown_deleted(self):
        """Test a first delete upserts an unknown deleted record."""
        result = merge(None, make_delete("3"), SESSION_ID)

        assert result.action is MergeAction.UPSERT
        assert result.record == UnknownDeletedRecord(
            id="3", channel_id="100", guild_id="10", deleted_timestamp=DELETED_AT
        )


class TestLiveRecords:
    """Test edits and deletes against Full and Incomplete records."""

    @pytest.mark.parametrize("factory", [created, incomplete])
    def test_edit_appends_exactly_one_iteration(self, factory):
        """Test an edit appends exactly one iteration."""
        existing = factory()
        event = make_edit(existing.id, "again")

        result = merge(existing, event, OTHER_SESSION_ID)

        assert result.action is MergeAction.UPSERT
        assert type(result.record) is type(existing)
        assert len(result.record.iterations) == len(existing.iterations) + 1
        assert result.record.iterations[:-1] == existing.iterations
        assert result.record.iterations[-1].content == "again"
        assert result.record.iterations[-1].session_id == OTHER_SESSION_ID

    def test_edit_sets_marked_as_edited(self):
        """Test a flagged edit marks the record as edited."""
        result = merge(created(), make_edit("1", "hi!"), SESSION_ID)
        assert result.record.marked_as_edited is True

    def test_unflagged_update_keeps_flag_false(self):
        """Test an unflagged update does not mark the record."""
        # e.g. an embed unfurl: an update without an edit timestamp
        event = make_edit("1", None, edited_timestamp=None, embeds=[{"title": "x"}])
        result = merge(created(), event, SESSION_ID)
        assert result.record.marked_as_edited is False

    def test_unflagged_update_does_not_clear_flag(self):
        """Test an unflagged update keeps an existing mark."""
        edited = merge(created(), make_edit("1", "hi!"), SESSION_ID).record
        event = make_edit("1", None, edited_timestamp=None)
        result = merge(edited, event, SESSION_ID)
        assert result.record.marked_as_edited is True

    def test_static_fields_not_updated_by_edits(self):
        """Test edits never change static fields."""
        existing = created()
        event = make_edit(
            "1", "hi!", author_id="999", timestamp=datetime(2020, 1, 1, tzinfo=timezone.utc)
        )
        result = merge(existing, event, SESSION_ID)
        assert result.record.author_id == "42"
        assert result.record.timestamp == CREATED_AT

    def test_delete_full(self):
        """Test deleting a full record keeps its history."""
        existing = merge(created(), make_edit("1", "hi!"), SESSION_ID).record

        result = merge(existing, make_delete("1"), SESSION_ID)

        assert result.action is MergeAction.UPSERT
        assert isinstance(result.record, FullDeletedRecord)
        assert result.record.deleted_timestamp == DELETED_AT
        assert result.record.iterations == existing.iterations
        assert result.record.marked_as_edited is True

    def test_delete_incomplete(self):
        """Test deleting an incomplete record keeps its history."""
        existing = incomplete()

        result = merge(existing, make_delete("2"), SESSION_ID)

        assert isinstance(result.record, IncompleteDeletedRecord)
        assert result.record.iterations == existing.iterations
        assert result.record.author_id == existing.author_id

    def test_create_for_existing_record_is_skipped(self):
        """Test a creation for a known message is skipped."""
        result = merge(created(), make_create("1", "hi"), SESSION_ID)
        assert result.action is MergeAction.SKIP
        assert result.record is None
        assert "already archived as Full" in result.reason


class TestDeletedRecords:
    """Test anomalies against records that are already deleted."""

    def deleted_records(self):
        return [
            merge(created(), make_delete("1"), SESSION_ID).record,
            merge(incomplete(), make_delete("2"), SESSION_ID).record,
            merge(None, make_delete("3"), SESSION_ID).record,
        ]

    def test_edit_is_skipped(self):
        """Test edits of deleted records are skipped."""
        for record in self.deleted_records():
            result = merge(record, make_edit(record.id, "zombie"), SESSION_ID)
            assert result.is_skip
            assert record.archive_type in result.reason

    def test_second_delete_is_skipped(self):
        """Test deletes of deleted records are skipped."""
        for record in self.deleted_records():
            result = merge(record, make_delete(record.id), SESSION_ID)
            assert result.is_skip

    def test_repeated_delete_leaves_record_intact(self):
        """Test a skipped delete leaves the record intact."""
        deleted = merge(created(), make_delete("1"), SESSION_ID).record
        snapshot = deleted.model_copy()

        result = merge(deleted, make_delete("1", received_at=CREATED_AT), SESSION_ID)

        assert result.is_skip
        assert deleted == snapshot
        assert isinstance(deleted, FullDeletedRecord)


class TestScenarios:
    """End-to-end lifecycle scenarios."""

    def test_create_edit_delete(self):
        """Test a create, edit and delete sequence."""
        record = merge(None, make_create("1", "hi"), SESSION_ID).record
        assert [it.content for it in record.iterations] == ["hi"]
        assert record.marked_as_edited is False

        record = merge(record, make_edit("1", "hi!"), SESSION_ID).record
        assert isinstance(record, FullRecord)
        assert [it.content for it in record.iterations] == ["hi", "hi!"]
        assert record.marked_as_edited is True

        record = merge(record, make_delete("1"), SESSION_ID).record
        assert isinstance(record, FullDeletedRecord)
        assert [it.content for it in record.iterations] == ["hi", "hi!"]
        assert record.deleted_timestamp is not None

    def test_bulk_delete_is_not_merged(self):
        """Test bulk deletes are refused by the merge."""
        event = MessageBulkDeleteEvent(ids=["1", "2"], channel_id="100")
        with pytest.raises(TypeError):
            merge(None, event, SESSION_ID)
