"""
Async Kafka producer.

Publishes one event type:
  interactions — emitted after an interaction (view/like/repost/comment/click)
                 has been appended to the interaction log.
                 Consumed by: analytics and any downstream profile builders.
"""
import json
import logging
import time
from typing import Optional

from aiokafka import AIOKafkaProducer

from bulletin_feed.config import settings

logger = logging.getLogger(__name__)

_producer: Optional[AIOKafkaProducer] = None


async def init_kafka() -> None:
    global _producer
    _producer = AIOKafkaProducer(
        bootstrap_servers=settings.kafka_bootstrap_servers,
        value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        acks="all",          # wait for all in-sync replicas
        enable_idempotence=True,
    )
    await _producer.start()
    logger.info(
        "Kafka producer started → %s", settings.kafka_bootstrap_servers
    )


async def stop_kafka() -> None:
    global _producer
    if _producer:
        await _producer.stop()
        _producer = None


def get_producer() -> AIOKafkaProducer:
    if _producer is None:
        raise RuntimeError("Kafka producer not initialised")
    return _producer


async def publish_interaction(
    interaction_id: str,
    user_id: str,
    post_id: str,
    interaction_type: str,
) -> None:
    """
    Emit an Interaction event to the 'interactions' Kafka topic.

    Schema:
      { interaction_id, user_id, post_id, type, timestamp }

    Keyed by user_id so one user's events stay ordered within a partition.
    """
    if not settings.kafka_enabled:
        return
    producer = get_producer()
    payload = {
        "interaction_id": interaction_id,
        "user_id": user_id,
        "post_id": post_id,
        "type": interaction_type,
        "timestamp": int(time.time() * 1000),  # milliseconds
    }
    await producer.send_and_wait(
        settings.kafka_topic_interactions, payload, key=user_id.encode("utf-8")
    )
    logger.debug("Published %s interaction for user_id=%s", interaction_type, user_id)
