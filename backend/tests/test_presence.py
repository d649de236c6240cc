"""Tests for the Realtime Database presence store."""

import asyncio
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from db.presence import RealtimePresenceStore, apply_event
from services.types import PresenceRecord


async def wait_for(predicate, timeout: float = 1.0) -> bool:
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.fixture
def rtdb_reference():
    with patch("db.presence.initialize_firebase_app"), patch(
        "db.presence.rtdb.reference"
    ) as reference:
        yield reference
class TestApplyEvent:
    """Tests for apply_event."""

    def test_put_at_root_replaces(self):
        value = apply_event(None, "put", "/", {"status": "online", "lastChanged": 1})
        assert value == {"status": "online", "lastChanged": 1}

    def test_patch_at_root_merges(self):
        current = {"status": "online", "lastChanged": 1}
        value = apply_event(current, "patch", "/", {"status": "offline"})
        assert value == {"status": "offline", "lastChanged": 1}
        assert current["status"] == "online"

    def test_put_at_child_path(self):
        current = {"status": "online", "lastChanged": 1}
        value = apply_event(current, "put", "/lastChanged", 2)
        assert value == {"status": "online", "lastChanged": 2}

    def test_put_null_child_removes_key(self):
        value = apply_event({"status": "online", "lastChanged": 1}, "put", "/lastChanged", None)
        assert value == {"status": "online"}

    def test_delete_root(self):
        assert apply_event({"status": "online"}, "put", "/", None) is None

    def test_scalar_typing_flag(self):
        assert apply_event(None, "put", "/", True) is True
        assert apply_event(True, "put", "/", False) is False


class TestPresenceRecord:
    """Tests for PresenceRecord.from_value."""

    def test_missing_value_is_offline(self):
        assert PresenceRecord.from_value(None).status == "offline"

    def test_online(self):
        record = PresenceRecord.from_value({"status": "online", "lastChanged": 5})
        assert record.online
        assert record.last_changed == 5


class TestRealtimePresenceStore:
    """Tests for RealtimePresenceStore.subscribe."""

    @pytest.mark.asyncio
    async def test_listener_connects_off_the_loop(self, rtdb_reference):
        registration = MagicMock()
        listen_threads = []
        received = []

        def listen(callback):
            listen_threads.append(threading.get_ident())
            callback(SimpleNamespace(event_type="put", path="/", data={"status": "online"}))
            return registration

        rtdb_reference.return_value.listen.side_effect = listen
        cancel = RealtimePresenceStore().subscribe("status/bob", received.append)

        assert await wait_for(lambda: received)
        assert listen_threads and listen_threads[0] != threading.get_ident()
        assert received == [{"status": "online"}]
        rtdb_reference.assert_called_once_with("status/bob")

        cancel()
        assert await wait_for(lambda: registration.close.called)
        assert registration.close.call_count == 1

    @pytest.mark.asyncio
    async def test_cancel_before_connect_closes_listener(self, rtdb_reference):
        registration = MagicMock()
        release = threading.Event()

        def listen(callback):
            release.wait(1)
            return registration

        rtdb_reference.return_value.listen.side_effect = listen
        cancel = RealtimePresenceStore().subscribe("typing/bob", lambda value: None)

        cancel()
        release.set()

        assert await wait_for(lambda: registration.close.called)
        assert registration.close.call_count == 1
