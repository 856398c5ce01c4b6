"""
Test suite for message and batch storage.
"""

import json

import pytest

from vuowma.state.database import InvalidMessageError, MessageStore


class TestMessages:
    """Tests for storing and loading messages."""

    def test_add_and_load_pending(self, store):
        """Test that stored messages are pending in insertion order."""
        first = store.add_message(json.dumps({"text": "first"}))
        second = store.add_message(json.dumps({"text": "second"}))

        pending = store.load_pending_messages()

        assert [m.id for m in pending] == [first.id, second.id]
        assert json.loads(pending[0].get_data()) == {"text": "first"}

    @pytest.mark.parametrize("data", ["not json", "[1, 2]", '"text"'])
    def test_invalid_message_rejected(self, store, data):
        """Test that only JSON objects are accepted."""
        with pytest.raises(InvalidMessageError):
            store.add_message(data)
        assert store.load_pending_messages() == []

    def test_not_connected(self, test_config):
        """Test that using the store before connect() fails."""
        store = MessageStore(test_config)
        with pytest.raises(RuntimeError):
            store.load_pending_messages()


class TestBatches:
    """Tests for batch bookkeeping."""

    def test_create_batch_assigns_messages(self, store):
        """Test that batched messages are no longer pending."""
        store.add_message(json.dumps({"text": "a"}))
        store.add_message(json.dumps({"text": "b"}))

        batch_id = store.create_batch(store.load_pending_messages())

        assert store.load_pending_messages() == []
        assert [m.get_data() for m in store.load_batch_messages(batch_id)] == [
            json.dumps({"text": "a"}),
            json.dumps({"text": "b"}),
        ]
        batch = store.load_batch(batch_id)
        assert batch.sent is False
        assert batch.sent_at is None

    def test_unsent_batches(self, store):
        """Test listing and excluding unsent batches."""
        first = store.create_batch([])
        second = store.create_batch([])
        third = store.create_batch([])

        assert store.load_unsent_batch_ids() == [first, second, third]
        assert store.load_unsent_batch_ids(exclude=third) == [first, second]

    def test_mark_batches_sent(self, store):
        """Test that sent batches drop out of the unsent list."""
        first = store.create_batch([])
        second = store.create_batch([])

        store.mark_batches_sent([first])

        assert store.load_unsent_batch_ids() == [second]
        assert store.load_batch(first).sent is True
        assert store.load_batch(first).sent_at is not None

    def test_mark_no_batches_sent(self, store):
        """Test that an empty id list is a no-op."""
        batch_id = store.create_batch([])
        store.mark_batches_sent([])
        assert store.load_unsent_batch_ids() == [batch_id]
