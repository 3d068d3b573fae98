# ============================================================================
# CLAUDE CONTEXT - REPOSITORY
# ============================================================================
# CATEGORY: AZURE RESOURCE REPOSITORIES
# PURPOSE: Azure Service Bus repository for JSON messages on queues and topics
# EXPORTS: ServiceBusRepository, get_service_bus_repository
# PYDANTIC_MODELS: Accepts BaseModel instances for sending, optional model for decoding
# DEPENDENCIES: azure-servicebus, azure-identity, pydantic, json, threading
# SOURCE: Azure Service Bus via connection string or DefaultAzureCredential
# SCOPE: Send / receive-and-complete / peek / queue depth
# PATTERNS: Singleton, Repository, sender cache
# ENTRY_POINTS: ServiceBusRepository.instance(), RepositoryFactory.create_service_bus_repository()
# ============================================================================

"""
Service Bus Repository Implementation

Messages travel as JSON with content type application/json. Pydantic
models are serialized with model_dump_json(); anything else goes through
json.dumps(). On the way back, passing model= decodes bodies into that
pydantic model, otherwise plain json.loads() results are returned.

Queues and topics share the same helpers: topics need a subscription name
to receive or peek.
"""

import json
import threading
from typing import Any, Dict, List, Optional, Type, Union

from azure.servicebus import ServiceBusClient, ServiceBusMessage, ServiceBusSender, ServiceBusReceiver
from azure.servicebus.management import ServiceBusAdministrationClient
from azure.identity import DefaultAzureCredential
from pydantic import BaseModel

from config import get_config, ServiceBusConfig
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError, ServiceBusError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ServiceBusRepository")


class ServiceBusRepository:
    """
    Service Bus repository for queues and topics.

    Configuration (via environment variables):
    - SERVICE_BUS_CONNECTION_STRING: Full connection string
    - SERVICE_BUS_NAMESPACE: Fully qualified namespace, used with DefaultAzureCredential
      when no connection string is set
    - SERVICE_BUS_MAX_WAIT_SECONDS: Receive wait (default: 20)
    """

    _instance: Optional['ServiceBusRepository'] = None
    _lock = threading.Lock()

    def __init__(
        self,
        config: Optional[ServiceBusConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        client: Optional[ServiceBusClient] = None,
        admin_client: Optional[ServiceBusAdministrationClient] = None,
    ):
        logger.info("🚌 Initializing ServiceBusRepository")
        self.config = config or get_config().service_bus

        try:
            if client is None or admin_client is None:
                if self.config.connection_string:
                    logger.info("🔑 Using connection string authentication")
                    client = client or ServiceBusClient.from_connection_string(self.config.connection_string)
                    admin_client = admin_client or ServiceBusAdministrationClient.from_connection_string(
                        self.config.connection_string
                    )
                elif self.config.namespace:
                    logger.info(f"🔐 Using DefaultAzureCredential for namespace {self.config.namespace}")
                    credential = DefaultAzureCredential()
                    client = client or ServiceBusClient(
                        fully_qualified_namespace=self.config.namespace,
                        credential=credential,
                    )
                    admin_client = admin_client or ServiceBusAdministrationClient(
                        fully_qualified_namespace=self.config.namespace,
                        credential=credential,
                    )
                else:
                    raise ConfigurationError(
                        "SERVICE_BUS_CONNECTION_STRING or SERVICE_BUS_NAMESPACE is required for ServiceBusRepository"
                    )
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"❌ Failed to initialize ServiceBusRepository: {e}")
            raise

        self.client = client
        self.admin_client = admin_client
        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="ServiceBusRepository.retry"
        )

        # Senders are reused; receivers are created per call and closed by `with`
        self._senders: Dict[str, ServiceBusSender] = {}
        logger.info("✅ ServiceBusRepository initialized")

    @classmethod
    def instance(cls) -> 'ServiceBusRepository':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    # ========================================================================
    # CLIENT HELPERS
    # ========================================================================

    def _get_sender(self, entity_name: str, is_topic: bool) -> ServiceBusSender:
        cache_key = f"{'topic' if is_topic else 'queue'}:{entity_name}"
        with self._lock:
            if cache_key not in self._senders:
                logger.debug(f"🚌 Creating new sender for {cache_key}")
                if is_topic:
                    self._senders[cache_key] = self.client.get_topic_sender(topic_name=entity_name)
                else:
                    self._senders[cache_key] = self.client.get_queue_sender(queue_name=entity_name)
            return self._senders[cache_key]

    def _get_receiver(self, entity_name: str, subscription: Optional[str] = None) -> ServiceBusReceiver:
        if subscription is not None:
            return self.client.get_subscription_receiver(topic_name=entity_name, subscription_name=subscription)
        return self.client.get_queue_receiver(queue_name=entity_name)

    @staticmethod
    def _to_message(message: Union[BaseModel, Any]) -> ServiceBusMessage:
        if isinstance(message, BaseModel):
            body = message.model_dump_json()
        else:
            body = json.dumps(message, default=str)
        return ServiceBusMessage(body=body, content_type="application/json")

    @staticmethod
    def _decode(msg, model: Optional[Type[BaseModel]]) -> Any:
        body = str(msg)
        try:
            if model is not None:
                return model.model_validate_json(body)
            return json.loads(body)
        except ValueError as e:
            raise ServiceBusError(f"Message {msg.message_id} body is not valid JSON for {model or 'json'}: {e}") from e

    # ========================================================================
    # SEND
    # ========================================================================

    def send_queue_message(self, queue_name: str, message: Union[BaseModel, Any]) -> None:
        """Send one JSON message to a queue."""
        self._send(queue_name, message, is_topic=False)

    def send_topic_message(self, topic_name: str, message: Union[BaseModel, Any]) -> None:
        """Send one JSON message to a topic."""
        self._send(topic_name, message, is_topic=True)

    def _send(self, entity_name: str, message: Union[BaseModel, Any], is_topic: bool) -> None:
        sender = self._get_sender(entity_name, is_topic)
        sb_message = self._to_message(message)
        try:
            self.retry_policy.run(
                lambda: sender.send_messages(sb_message),
                operation_name=f"servicebus send {entity_name}",
            )
            logger.debug(f"📤 Message sent to {entity_name}")
        except Exception as e:
            logger.error(f"❌ Failed to send message to {entity_name}: {e}")
            raise

    # ========================================================================
    # RECEIVE
    # ========================================================================

    def receive_queue_messages(
        self,
        queue_name: str,
        max_messages: Optional[int] = None,
        model: Optional[Type[BaseModel]] = None,
    ) -> List[Any]:
        """Receive up to max_messages from a queue, decode them and complete them."""
        return self._receive_and_complete(queue_name, None, max_messages, model)

    def receive_topic_messages(
        self,
        topic_name: str,
        subscription: str,
        max_messages: Optional[int] = None,
        model: Optional[Type[BaseModel]] = None,
    ) -> List[Any]:
        """Receive up to max_messages from a topic subscription, decode them and complete them."""
        return self._receive_and_complete(topic_name, subscription, max_messages, model)

    def _receive_and_complete(
        self,
        entity_name: str,
        subscription: Optional[str],
        max_messages: Optional[int],
        model: Optional[Type[BaseModel]],
    ) -> List[Any]:
        max_messages = max_messages or self.config.max_message_count
        receiver = self._get_receiver(entity_name, subscription)
        try:
            with receiver:
                messages = receiver.receive_messages(
                    max_message_count=max_messages,
                    max_wait_time=self.config.max_wait_seconds,
                )
                # Nothing is completed until the whole batch decodes; locks on an
                # undecodable batch expire and the messages are redelivered.
                result = [self._decode(msg, model) for msg in messages]
                for msg in messages:
                    receiver.complete_message(msg)
            logger.info(f"📥 Received and completed {len(result)} messages from {entity_name}")
            return result
        except Exception as e:
            logger.error(f"❌ Failed to receive messages from {entity_name}: {e}")
            raise

    # ========================================================================
    # PEEK
    # ========================================================================

    def peek_queue_messages(
        self,
        queue_name: str,
        max_messages: Optional[int] = None,
        from_sequence_number: Optional[int] = None,
        model: Optional[Type[BaseModel]] = None,
    ) -> List[Any]:
        """Look at queue messages without locking or removing them."""
        return self._peek(queue_name, None, max_messages, from_sequence_number, model)

    def peek_topic_messages(
        self,
        topic_name: str,
        subscription: str,
        max_messages: Optional[int] = None,
        from_sequence_number: Optional[int] = None,
        model: Optional[Type[BaseModel]] = None,
    ) -> List[Any]:
        """Look at subscription messages without locking or removing them."""
        return self._peek(topic_name, subscription, max_messages, from_sequence_number, model)

    def _peek(
        self,
        entity_name: str,
        subscription: Optional[str],
        max_messages: Optional[int],
        from_sequence_number: Optional[int],
        model: Optional[Type[BaseModel]],
    ) -> List[Any]:
        kwargs = {"max_message_count": max_messages or self.config.max_message_count}
        if from_sequence_number is not None:
            kwargs["sequence_number"] = from_sequence_number
        receiver = self._get_receiver(entity_name, subscription)
        try:
            with receiver:
                messages = receiver.peek_messages(**kwargs)
                result = [self._decode(msg, model) for msg in messages]
            logger.debug(f"👀 Peeked at {len(result)} messages in {entity_name}")
            return result
        except Exception as e:
            logger.error(f"❌ Failed to peek messages in {entity_name}: {e}")
            raise

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def get_queue_message_count(self, queue_name: str) -> int:
        """Active (deliverable) message count of a queue."""
        try:
            properties = self.retry_policy.run(
                lambda: self.admin_client.get_queue_runtime_properties(queue_name),
                operation_name=f"servicebus count {queue_name}",
            )
            return properties.active_message_count
        except Exception as e:
            logger.error(f"❌ Failed to read runtime properties of {queue_name}: {e}")
            raise

    def close(self) -> None:
        """Close cached senders and both clients."""
        with self._lock:
            senders = list(self._senders.values())
            self._senders.clear()
        for sender in senders:
            try:
                sender.close()
            except Exception as e:
                logger.warning(f"⚠️ Failed to close sender: {e}")
        self.client.close()
        self.admin_client.close()
        logger.debug("🚌 ServiceBusRepository closed")


# Factory function for dependency injection
def get_service_bus_repository() -> ServiceBusRepository:
    """
    Get ServiceBusRepository singleton instance.

    Returns:
        ServiceBusRepository singleton instance
    """
    return ServiceBusRepository.instance()


__all__ = ['ServiceBusRepository', 'get_service_bus_repository']
