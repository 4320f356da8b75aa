"""
Tests for the session manager.
"""

import pytest

from ..engine_core import SessionNotFoundError, UnknownStateError
from ..session import SessionManager, SessionState
from ..spec_schema import DefinitionValidationError


@pytest.fixture
def manager(logger):
    return SessionManager(logger=logger)


class TestSessionLifecycle:
    """Create, dispatch, end."""

    def test_create_session(self, manager, kill_tracker):
        session = manager.create_session(kill_tracker)

        assert session.state == "Start"
        assert session.status is SessionState.ACTIVE
        assert session.context["Kills"] == 0
        assert manager.get_session(session.session_id) is session

    def test_session_context_is_private_copy(self, manager, kill_tracker):
        first = manager.create_session(kill_tracker)
        second = manager.create_session(kill_tracker)

        manager.dispatch(first.session_id, "Kill", {"IsTarget": True, "Name": "A"}, timestamp=1)

        assert first.context["Killed"] == ["A"]
        assert second.context["Killed"] == []
        assert kill_tracker["Context"]["Killed"] == []

    def test_custom_context_and_state(self, manager, kill_tracker):
        session = manager.create_session(kill_tracker, initial_state="Success", context={"Kills": 3})
        assert session.state == "Success"
        assert session.context == {"Kills": 3}

    def test_invalid_definition(self, manager):
        with pytest.raises(DefinitionValidationError):
            manager.create_session({"States": {}})

    def test_unknown_initial_state(self, manager, kill_tracker):
        with pytest.raises(UnknownStateError):
            manager.create_session(kill_tracker, initial_state="Nowhere")

    def test_full_run(self, manager, kill_tracker):
        sid = manager.create_session(kill_tracker).session_id

        manager.dispatch(sid, "Kill", {"IsTarget": True, "Name": "A"}, timestamp=1)
        manager.dispatch(sid, "Kill", {"IsTarget": True, "Name": "B"}, timestamp=2)
        result = manager.dispatch(sid, "Exit", timestamp=3)
        assert result.state == "Success"

        manager.tick(sid, timestamp=10)
        assert manager.require_session(sid).timers
        result = manager.tick(sid, timestamp=20)

        session = manager.require_session(sid)
        assert result.state == "Done"
        assert session.state == "Done"
        assert session.event_count == 5
        assert session.last_event_at == 20
        assert session.timers == []

    def test_snapshot(self, manager, kill_tracker):
        session = manager.create_session(kill_tracker, initial_state="Success")
        manager.tick(session.session_id, timestamp=100)

        snapshot = session.snapshot()
        assert snapshot["state"] == "Success"
        assert snapshot["timers"] == [{
            "path": "Success.$timer[0].Condition.$after",
            "startTime": 100,
            "endTime": 110,
        }]
        snapshot["context"]["Kills"] = 99
        assert session.context["Kills"] == 0

    def test_end_session(self, manager, kill_tracker):
        session = manager.create_session(kill_tracker)

        assert manager.end_session(session.session_id) is True
        assert session.status is SessionState.ENDED
        assert manager.get_session(session.session_id) is None
        assert manager.end_session(session.session_id) is False

    def test_end_session_releases_lock(self, manager, kill_tracker):
        session = manager.create_session(kill_tracker, initial_state="Success")
        manager.tick(session.session_id, timestamp=100)

        manager.end_session(session.session_id)

        assert session.timers == []
        assert session._lock.acquire(blocking=False)
        session._lock.release()

    def test_reset_without_context_is_rejected(self, manager):
        """A $reset needs the definition's Context, not the session's."""
        definition = {"States": {"Start": {"Go": {"Actions": [{"$inc": "Kills"}, {"$reset": "Kills"}]}}}}
        with pytest.raises(DefinitionValidationError):
            manager.create_session(definition, context={"Kills": 0})

    def test_dispatch_unknown_session(self, manager):
        with pytest.raises(SessionNotFoundError):
            manager.dispatch("missing", "Kill")

    def test_session_not_found_is_key_error(self, manager):
        with pytest.raises(KeyError):
            manager.require_session("missing")


class TestSessionHousekeeping:
    """Listing and stale cleanup."""

    def test_list_active(self, manager, kill_tracker):
        a = manager.create_session(kill_tracker)
        b = manager.create_session(kill_tracker)
        manager.end_session(a.session_id)

        assert manager.list_active_sessions() == [b.session_id]

    def test_cleanup_stale(self, manager, kill_tracker):
        stale = manager.create_session(kill_tracker)
        fresh = manager.create_session(kill_tracker)
        stale.updated_at = 1000
        fresh.updated_at = 1500

        removed = manager.cleanup_stale_sessions(max_age_seconds=100, now=1550)

        assert removed == 1
        assert manager.get_session(stale.session_id) is None
        assert manager.get_session(fresh.session_id) is fresh

    def test_event_time_does_not_age_session(self, manager, kill_tracker):
        session = manager.create_session(kill_tracker)
        manager.dispatch(session.session_id, "Pickup", timestamp=1)

        assert manager.cleanup_stale_sessions(max_age_seconds=3600) == 0
        assert session.updated_at >= session.created_at
