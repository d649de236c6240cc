"""Tests for chat state reconciliation across live streams."""

import asyncio

import pytest
from conftest import seed_users

from db import SERVER_TIMESTAMP, WriteOp
from services import ChatStateReconciler, Identity, InvalidSelectionError
from services.identity import ASSISTANT, DirectUser, GroupTarget


async def add_direct(store, sender: str, receiver: str, text: str) -> str:
    key = "_".join(sorted([sender, receiver]))
    return await store.add(
        "messages",
        {
            "text": text,
            "timestamp": SERVER_TIMESTAMP,
            "uid": sender,
            "conversationId": key,
            "receiverId": receiver,
        },
    )


class TestReconcilerStreams:
    """Tests for users, groups and per-target streams."""

    @pytest.mark.asyncio
    async def test_start_loads_users_and_member_groups(self, store, presence_store, alice, user_docs):
        await seed_users(store, *user_docs)
        await store.commit(
            [
                WriteOp("groups", {"name": "Team", "members": ["alice", "bob"]}, doc_id="g1"),
                WriteOp("groups", {"name": "Other", "members": ["carol"]}, doc_id="g2"),
            ]
        )

        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()

        assert {u.uid for u in reconciler.users} == {"alice", "bob", "carol"}
        assert [g.id for g in reconciler.groups] == ["g1"]
        assert reconciler.current_user.name == "Alice"
        reconciler.close()

    @pytest.mark.asyncio
    async def test_direct_messages_are_ascending_and_scoped(self, store, presence_store, alice):
        await add_direct(store, "alice", "bob", "one")
        await add_direct(store, "bob", "alice", "two")
        await add_direct(store, "alice", "carol", "elsewhere")

        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")

        assert [m.text for m in reconciler.messages] == ["one", "two"]

        await add_direct(store, "bob", "alice", "three")
        assert [m.text for m in reconciler.messages] == ["one", "two", "three"]
        reconciler.close()

    @pytest.mark.asyncio
    async def test_window_keeps_most_recent(self, store, presence_store, alice):
        for i in range(5):
            await add_direct(store, "alice", "bob", f"m{i}")

        reconciler = ChatStateReconciler(alice, store, presence_store, message_window=3)
        reconciler.start()
        reconciler.select_user("bob")

        assert [m.text for m in reconciler.messages] == ["m2", "m3", "m4"]
        reconciler.close()

    @pytest.mark.asyncio
    async def test_switch_clears_and_ignores_previous_target(self, store, presence_store, alice):
        await add_direct(store, "alice", "bob", "for bob")
        await store.add(
            "messages",
            {"text": "team", "timestamp": SERVER_TIMESTAMP, "uid": "carol", "groupId": "g1"},
        )

        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")
        baseline = store.subscriber_count

        reconciler.select_group("g1")
        assert reconciler.target == GroupTarget("g1")
        assert [m.text for m in reconciler.messages] == ["team"]
        assert store.subscriber_count == baseline

        await add_direct(store, "bob", "alice", "late for bob")
        assert [m.text for m in reconciler.messages] == ["team"]
        reconciler.close()

    @pytest.mark.asyncio
    async def test_clear_selection_drops_messages(self, store, presence_store, alice):
        await add_direct(store, "alice", "bob", "hi")
        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")

        reconciler.clear_selection()

        assert reconciler.messages == []
        assert reconciler.target.kind == "none"
        assert store.subscriber_count == 2
        reconciler.close()

    @pytest.mark.asyncio
    async def test_assistant_stream_is_owner_scoped(self, store, presence_store, alice):
        await store.add("aiMessages", {"text": "mine", "timestamp": SERVER_TIMESTAMP, "userId": "alice"})
        await store.add("aiMessages", {"text": "theirs", "timestamp": SERVER_TIMESTAMP, "userId": "bob"})

        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_assistant()

        assert reconciler.target == ASSISTANT
        assert [m.text for m in reconciler.messages] == ["mine"]
        reconciler.close()

    def test_empty_selection_ids_rejected(self, store, presence_store, alice):
        reconciler = ChatStateReconciler(alice, store, presence_store)
        with pytest.raises(InvalidSelectionError):
            reconciler.select_user("")
        with pytest.raises(InvalidSelectionError):
            reconciler.select_group("")


class TestReconcilerPresence:
    """Tests for presence and typing of a direct peer."""

    def test_presence_and_typing_follow_direct_peer(self, store, presence_store, alice):
        presence_store.set("status/bob", {"status": "online", "lastChanged": 1700})
        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")

        assert reconciler.presence["bob"].online
        assert not reconciler.typing.get("bob")

        presence_store.set("typing/bob", True)
        assert reconciler.typing["bob"] is True

        presence_store.set("status/bob", {"status": "offline", "lastChanged": 1800})
        assert reconciler.presence["bob"].status == "offline"
        reconciler.close()

    def test_presence_listeners_stop_on_group_switch(self, store, presence_store, alice):
        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")
        assert presence_store.listener_count == 2

        reconciler.select_group("g1")
        assert presence_store.listener_count == 0

        presence_store.set("typing/bob", True)
        assert not reconciler.typing.get("bob")
        reconciler.close()

    def test_missing_presence_reads_offline(self, store, presence_store, alice):
        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")

        assert reconciler.presence["bob"].status == "offline"
        reconciler.close()


class TestReconcilerOrdering:
    """Slices do not depend on the arrival order of other streams."""

    def test_arrival_order_does_not_matter(self, store, presence_store, alice, user_docs):
        users = [{"id": d["uid"], **d} for d in user_docs]
        messages = [
            {"id": "m1", "text": "hey", "uid": "bob", "conversationId": "alice_bob"},
        ]

        first = ChatStateReconciler(alice, store, presence_store)
        first.target = DirectUser("bob")
        first.apply_messages(messages)
        first.apply_users(users)
        first.apply_presence("bob", {"status": "online"})

        second = ChatStateReconciler(alice, store, presence_store)
        second.target = DirectUser("bob")
        second.apply_presence("bob", {"status": "online"})
        second.apply_users(users)
        second.apply_messages(messages)

        assert first.messages == second.messages
        assert first.users == second.users
        assert first.presence == second.presence


class TestReconcilerLifecycle:
    """Tests for close and change notification."""

    def test_close_cancels_every_stream(self, store, presence_store, alice):
        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")

        reconciler.close()

        assert store.subscriber_count == 0
        assert presence_store.listener_count == 0
        with pytest.raises(RuntimeError):
            reconciler.select_assistant()

    @pytest.mark.asyncio
    async def test_wait_for_change_wakes_on_snapshot(self, store, presence_store):
        reconciler = ChatStateReconciler(Identity(uid="alice"), store, presence_store)
        reconciler.start()
        reconciler.select_user("bob")
        since = reconciler.version

        waiter = asyncio.create_task(reconciler.wait_for_change(since))
        await asyncio.sleep(0)
        assert not waiter.done()

        await add_direct(store, "bob", "alice", "ping")
        version = await asyncio.wait_for(waiter, timeout=1)

        assert version > since
        reconciler.close()

    @pytest.mark.asyncio
    async def test_wait_for_change_returns_when_closed(self, store, presence_store, alice):
        reconciler = ChatStateReconciler(alice, store, presence_store)
        reconciler.start()
        since = reconciler.version

        waiter = asyncio.create_task(reconciler.wait_for_change(since))
        await asyncio.sleep(0)
        reconciler.close()

        await asyncio.wait_for(waiter, timeout=1)
        assert reconciler.closed
