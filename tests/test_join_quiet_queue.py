"""Tests for the join quiet period queue."""

import pytest

from slackirc.core.join_quiet_queue import JoinQuietQueue


@pytest.fixture
def flushed():
    return []


@pytest.fixture
def queue(scheduler, flushed):
    return JoinQuietQueue(
        lambda channel, nick, messages: flushed.append((channel, nick, list(messages))),
        queue_for=30.0,
        scheduler=scheduler,
    )


class TestJoinQuietQueue:
    def test_messages_held_then_flushed_in_order(self, queue, scheduler, flushed):
        queue.joined("c", "bob")
        assert queue.enqueue("c", "bob", "one")
        assert queue.enqueue("c", "bob", "two")
        assert queue.enqueue("c", "bob", "three")
        assert queue.pending("c", "bob") == ["one", "two", "three"]
        assert flushed == []

        scheduler.advance(30)

        assert flushed == [("c", "bob", ["one", "two", "three"])]
        assert not queue.is_held("c", "bob")
        assert queue.pending("c", "bob") == []

    def test_leave_discards_buffer(self, queue, scheduler, flushed):
        queue.joined("c", "bob")
        for text in ("one", "two", "three"):
            queue.enqueue("c", "bob", text)

        assert queue.left("c", "bob") == 3
        scheduler.advance(60)

        assert flushed == []
        assert ("c", "bob") not in queue
        assert scheduler.live == []

    def test_each_message_restarts_the_window(self, queue, scheduler, flushed):
        queue.joined("c", "bob")
        queue.enqueue("c", "bob", "one")
        scheduler.advance(20)
        queue.enqueue("c", "bob", "two")
        scheduler.advance(20)
        assert flushed == []
        assert len(scheduler.live) == 1

        scheduler.advance(10)
        assert flushed == [("c", "bob", ["one", "two"])]

    def test_nick_without_join_passes_through(self, queue):
        assert not queue.enqueue("c", "dave", "hello")
        assert ("c", "dave") not in queue

    def test_after_flush_messages_pass_through(self, queue, scheduler):
        queue.joined("c", "bob")
        queue.enqueue("c", "bob", "one")
        scheduler.advance(30)
        assert ("c", "bob") in queue
        assert not queue.enqueue("c", "bob", "two")

    def test_rejoin_holds_again(self, queue, scheduler, flushed):
        queue.joined("c", "bob")
        queue.enqueue("c", "bob", "one")
        scheduler.advance(30)
        queue.joined("c", "bob")
        assert queue.enqueue("c", "bob", "two")
        scheduler.advance(30)
        assert flushed[-1] == ("c", "bob", ["two"])

    def test_entries_are_per_channel_and_nick(self, queue, scheduler, flushed):
        queue.joined("#a", "bob")
        queue.joined("#b", "bob")
        queue.enqueue("#a", "bob", "in a")
        queue.enqueue("#b", "bob", "in b")
        queue.left("#a", "bob")
        scheduler.advance(30)
        assert flushed == [("#b", "bob", ["in b"])]

    def test_channel_is_case_insensitive(self, queue):
        queue.joined("#Bridge", "bob")
        assert queue.is_held("#bridge", "bob")

    def test_left_without_entry(self, queue):
        assert queue.left("c", "nobody") == 0

    def test_clear_cancels_timers(self, queue, scheduler, flushed):
        queue.joined("c", "bob")
        queue.enqueue("c", "bob", "one")
        queue.clear()
        scheduler.advance(30)
        assert flushed == []
        assert scheduler.live == []


class TestNickChanges:
    def test_rename_moves_held_messages(self, queue, scheduler, flushed):
        queue.joined("#bridge", "carol")
        queue.enqueue("#bridge", "carol", "one")
        queue.renamed("carol", "carol_away")

        assert ("#bridge", "carol") not in queue
        assert queue.is_held("#bridge", "carol_away")
        assert queue.enqueue("#bridge", "carol_away", "two")
        assert len(scheduler.live) == 1

        scheduler.advance(30)
        assert flushed == [("#bridge", "carol_away", ["one", "two"])]

    def test_rename_without_messages_keeps_entry_reachable(self, queue):
        queue.joined("#bridge", "carol")
        queue.renamed("carol", "carol2")
        assert queue.left("#bridge", "carol2") == 0
        assert ("#bridge", "carol") not in queue
        assert ("#bridge", "carol2") not in queue

    def test_rename_applies_to_every_channel(self, queue):
        queue.joined("#a", "carol")
        queue.joined("#b", "carol")
        queue.renamed("carol", "carol2")
        assert queue.is_held("#a", "carol2") and queue.is_held("#b", "carol2")

    def test_rename_replaces_an_existing_entry(self, queue, scheduler, flushed):
        queue.joined("#bridge", "carol2")
        queue.enqueue("#bridge", "carol2", "stale")
        queue.joined("#bridge", "carol")
        queue.enqueue("#bridge", "carol", "fresh")
        queue.renamed("carol", "carol2")

        scheduler.advance(30)
        assert flushed == [("#bridge", "carol2", ["fresh"])]

    def test_rename_of_unknown_nick(self, queue):
        queue.renamed("nobody", "somebody")
        assert ("#bridge", "somebody") not in queue
