"""
ServiceBusRepository tests with mocked ServiceBus clients.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from config import ServiceBusConfig
from exceptions import ConfigurationError, ServiceBusError
from infrastructure.service_bus import ServiceBusRepository
from tests.factories.azure_errors import http_error


class OrderPlaced(BaseModel):
    order_id: str
    quantity: int


class ReceivedMessage:
    """Body and message id, the parts of ServiceBusReceivedMessage the repository reads."""

    def __init__(self, body, message_id="msg-1"):
        self._body = body
        self.message_id = message_id

    def __str__(self):
        return self._body


@pytest.fixture
def client():
    return MagicMock(name="ServiceBusClient")


@pytest.fixture
def admin_client():
    return MagicMock(name="ServiceBusAdministrationClient")


@pytest.fixture
def repo(client, admin_client, retry_policy):
    return ServiceBusRepository(
        config=ServiceBusConfig(max_wait_seconds=5, max_message_count=10),
        retry_policy=retry_policy,
        client=client,
        admin_client=admin_client,
    )


def test_connection_settings_required(retry_policy):
    with pytest.raises(ConfigurationError):
        ServiceBusRepository(config=ServiceBusConfig(), retry_policy=retry_policy)


class TestSend:

    def test_pydantic_message_serialized(self, repo, client):
        repo.send_queue_message("orders", OrderPlaced(order_id="o-1", quantity=2))
        sent = client.get_queue_sender.return_value.send_messages.call_args.args[0]
        assert json.loads(b"".join(sent.body)) == {"order_id": "o-1", "quantity": 2}
        assert sent.content_type == "application/json"

    def test_plain_message_serialized(self, repo, client):
        repo.send_topic_message("events", {"kind": "ping"})
        client.get_topic_sender.assert_called_once_with(topic_name="events")
        sent = client.get_topic_sender.return_value.send_messages.call_args.args[0]
        assert json.loads(b"".join(sent.body)) == {"kind": "ping"}

    def test_senders_are_cached(self, repo, client):
        repo.send_queue_message("orders", {"a": 1})
        repo.send_queue_message("orders", {"a": 2})
        client.get_queue_sender.assert_called_once_with(queue_name="orders")

    def test_send_retried(self, repo, client):
        sender = client.get_queue_sender.return_value
        sender.send_messages.side_effect = [http_error(503), None]
        repo.send_queue_message("orders", {"a": 1})
        assert sender.send_messages.call_count == 2


class TestReceive:

    def test_messages_decoded_and_completed(self, repo, client):
        receiver = client.get_queue_receiver.return_value
        first = ReceivedMessage('{"order_id": "o-1", "quantity": 1}', "m1")
        second = ReceivedMessage('{"order_id": "o-2", "quantity": 3}', "m2")
        receiver.receive_messages.return_value = [first, second]

        orders = repo.receive_queue_messages("orders", max_messages=2, model=OrderPlaced)

        assert [o.order_id for o in orders] == ["o-1", "o-2"]
        receiver.receive_messages.assert_called_once_with(max_message_count=2, max_wait_time=5)
        assert [c.args[0] for c in receiver.complete_message.call_args_list] == [first, second]
        receiver.__exit__.assert_called_once()

    def test_default_message_count(self, repo, client):
        receiver = client.get_queue_receiver.return_value
        receiver.receive_messages.return_value = []
        assert repo.receive_queue_messages("orders") == []
        assert receiver.receive_messages.call_args.kwargs["max_message_count"] == 10

    def test_topic_subscription(self, repo, client):
        receiver = client.get_subscription_receiver.return_value
        receiver.receive_messages.return_value = [ReceivedMessage('{"kind": "ping"}')]
        assert repo.receive_topic_messages("events", "audit") == [{"kind": "ping"}]
        client.get_subscription_receiver.assert_called_once_with(topic_name="events", subscription_name="audit")

    def test_bad_body_not_completed(self, repo, client):
        receiver = client.get_queue_receiver.return_value
        receiver.receive_messages.return_value = [ReceivedMessage("not json")]
        with pytest.raises(ServiceBusError):
            repo.receive_queue_messages("orders")
        receiver.complete_message.assert_not_called()

    def test_bad_body_later_in_batch_completes_nothing(self, repo, client):
        receiver = client.get_queue_receiver.return_value
        receiver.receive_messages.return_value = [
            ReceivedMessage('{"order_id": "o-1", "quantity": 1}', "m1"),
            ReceivedMessage("not json", "m2"),
        ]
        with pytest.raises(ServiceBusError):
            repo.receive_queue_messages("orders", model=OrderPlaced)
        receiver.complete_message.assert_not_called()


class TestPeek:

    def test_peek_from_sequence_number(self, repo, client):
        receiver = client.get_queue_receiver.return_value
        receiver.peek_messages.return_value = [ReceivedMessage('{"a": 1}')]
        assert repo.peek_queue_messages("orders", max_messages=3, from_sequence_number=17) == [{"a": 1}]
        receiver.peek_messages.assert_called_once_with(max_message_count=3, sequence_number=17)
        receiver.complete_message.assert_not_called()

    def test_peek_topic(self, repo, client):
        receiver = client.get_subscription_receiver.return_value
        receiver.peek_messages.return_value = []
        assert repo.peek_topic_messages("events", "audit") == []
        receiver.peek_messages.assert_called_once_with(max_message_count=10)


class TestAdministration:

    def test_queue_message_count(self, repo, admin_client):
        admin_client.get_queue_runtime_properties.return_value = SimpleNamespace(active_message_count=12)
        assert repo.get_queue_message_count("orders") == 12

    def test_close(self, repo, client, admin_client):
        repo.send_queue_message("orders", {"a": 1})
        repo.close()
        client.get_queue_sender.return_value.close.assert_called_once()
        client.close.assert_called_once()
        admin_client.close.assert_called_once()
