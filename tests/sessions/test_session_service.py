from unittest.mock import MagicMock

import pytest

from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.models import AuditEventType
from ocra.sessions.service import SessionService


class TestOpenSession:
    def test_records_successful_login(
        self, session_service, audit_recorder, profile, tokens
    ):
        # Act
        session_id = session_service.open_session(
            profile, tokens, user_agent="pytest-browser", ip_address="203.0.113.7"
        )

        # Assert
        (event,) = audit_recorder.for_user(profile.sub)
        assert event.event_type == AuditEventType.LOGIN.value
        assert event.success is True
        assert event.session_id == session_id
        assert event.ip_address == "203.0.113.7"
        assert session_service.current(session_id).user.sub == profile.sub

    def test_persistence_failure_records_failed_login(
        self, audit_recorder, profile, tokens
    ):
        # Arrange
        store = MagicMock()
        store.create.side_effect = SessionPersistenceError("disk full")
        service = SessionService(store, audit_recorder)

        # Act
        with pytest.raises(SessionPersistenceError):
            service.open_session(profile, tokens)

        # Assert
        (event,) = audit_recorder.for_user(profile.sub)
        assert event.success is False
        assert event.session_id is None
        assert "disk full" in event.error_message


class TestCloseSession:
    def test_records_logout_for_owner(
        self, session_service, audit_recorder, profile, tokens
    ):
        # Arrange
        session_id = session_service.open_session(profile, tokens)

        # Act
        removed = session_service.close_session(session_id, user_agent="ua")

        # Assert
        assert removed is True
        assert session_service.current(session_id) is None
        logout, login = audit_recorder.for_user(profile.sub)
        assert logout.event_type == AuditEventType.LOGOUT.value
        assert logout.session_id == session_id
        assert logout.user_agent == "ua"
        assert login.event_type == AuditEventType.LOGIN.value

    def test_absent_session_records_nothing(self, session_service, audit_recorder):
        # Act
        removed = session_service.close_session("no-such-session")

        # Assert
        assert removed is False
        assert audit_recorder.recent() == []

    def test_sweep_delegates_to_store(self, audit_recorder):
        # Arrange
        store = MagicMock()
        store.sweep_expired.return_value = 3
        service = SessionService(store, audit_recorder)

        # Act / Assert
        assert service.sweep_expired() == 3
