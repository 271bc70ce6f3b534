import logging

import pytest

from ocra.sessions.audit import MAX_AUDIT_LIMIT, AuditRecorder, clamp_limit
from ocra.sessions.database import create_db_engine
from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.models import AuditEventType


class TestClampLimit:
    @pytest.mark.parametrize(
        "requested, expected",
        [(None, 20), (0, 1), (-5, 1), (10, 10), (100, 100), (1000, MAX_AUDIT_LIMIT)],
    )
    def test_clamps_to_valid_range(self, requested, expected):
        assert clamp_limit(requested, 20) == expected


class TestRecord:
    def test_events_are_listed_newest_first(self, audit_recorder):
        # Arrange
        audit_recorder.record(AuditEventType.LOGIN, "user-1", success=True)
        audit_recorder.record(AuditEventType.LOGOUT, "user-1", success=True)
        audit_recorder.record(
            AuditEventType.LOGIN, "user-1", success=False, error_message="db down"
        )

        # Act
        events = audit_recorder.for_user("user-1")

        # Assert
        assert [(e.event_type, e.success) for e in events] == [
            ("login", False),
            ("logout", True),
            ("login", True),
        ]
        assert events[0].error_message == "db down"

    def test_for_user_only_returns_that_subject(self, audit_recorder):
        # Arrange
        audit_recorder.record(AuditEventType.LOGIN, "user-1", success=True)
        audit_recorder.record(AuditEventType.LOGIN, "user-2", success=True)

        # Act
        events = audit_recorder.for_user("user-2")

        # Assert
        assert [e.user_sub for e in events] == ["user-2"]

    def test_limit_is_applied(self, audit_recorder):
        # Arrange
        for _ in range(5):
            audit_recorder.record(AuditEventType.LOGIN, "user-1", success=True)

        # Act / Assert
        assert len(audit_recorder.for_user("user-1", limit=2)) == 2
        assert len(audit_recorder.recent(limit=0)) == 1

    def test_recent_filters_by_entity_type(self, audit_recorder):
        # Arrange
        audit_recorder.record(AuditEventType.LOGIN, "user-1", success=True)
        audit_recorder.record(
            AuditEventType.LOGIN, "user-1", success=True, entity_type="api_key"
        )

        # Act
        events = audit_recorder.recent(entity_type="api_key")

        # Assert
        assert len(events) == 1
        assert events[0].entity_type == "api_key"
        assert len(audit_recorder.recent()) == 2

    def test_callbacks_receive_written_events(self, audit_recorder):
        # Arrange
        seen = []
        audit_recorder.on_record(seen.append)

        # Act
        audit_recorder.record(
            AuditEventType.LOGOUT, "user-1", success=True, session_id="sess-1"
        )

        # Assert
        assert len(seen) == 1
        assert seen[0].session_id == "sess-1"
        assert seen[0].id is not None

    def test_failing_callback_does_not_raise(self, audit_recorder):
        # Arrange
        def broken(event):
            raise RuntimeError("boom")

        audit_recorder.on_record(broken)

        # Act
        audit_recorder.record(AuditEventType.LOGIN, "user-1", success=True)

        # Assert
        assert len(audit_recorder.recent()) == 1


class TestRecordFailures:
    def setup_method(self):
        # Arrange: an engine whose schema was never created
        self.engine = create_db_engine("sqlite://")
        self.recorder = AuditRecorder(self.engine)

    def teardown_method(self):
        self.engine.dispose()

    def test_write_failure_is_logged_not_raised(self, caplog):
        # Act
        with caplog.at_level(logging.CRITICAL, logger="ocra.sessions.audit"):
            self.recorder.record(AuditEventType.LOGIN, "user-1", success=True)

        # Assert
        assert any(
            r.levelno == logging.CRITICAL and "user-1" in r.getMessage()
            for r in caplog.records
        )

    def test_callbacks_are_skipped_on_failure(self):
        # Arrange
        seen = []
        self.recorder.on_record(seen.append)

        # Act
        self.recorder.record(AuditEventType.LOGIN, "user-1", success=True)

        # Assert
        assert seen == []

    def test_read_failure_raises(self):
        with pytest.raises(SessionPersistenceError):
            self.recorder.recent()
