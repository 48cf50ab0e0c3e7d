import json
import time

from kafka import KafkaProducer

from config import KAFKA_BOOTSTRAP_SERVERS, KAFKA_TOPIC_SESSION_EVENTS
from utils import report

logger = report.settings(__file__)


def is_enabled():
    return bool(KAFKA_BOOTSTRAP_SERVERS)


def get_producer():
    return KafkaProducer(
        bootstrap_servers=KAFKA_BOOTSTRAP_SERVERS,
        value_serializer=lambda v: json.dumps(v).encode('utf-8')
    )


def to_record(notification):
    return {
        "type": notification.type,
        "payload": notification.payload,
        "timestamp": time.time()
    }


def forward_notifications(subscription, producer=None, topic=KAFKA_TOPIC_SESSION_EVENTS):
    """Mirror every session notification from a relay subscription to Kafka. Runs forever."""
    producer = producer or get_producer()
    logger.info(f"🚀 Forwarding session events to Kafka topic '{topic}'")

    while True:
        notification = subscription.get()
        if notification is None:
            return
        record = to_record(notification)
        if notification.type == "qr":
            # QR images are large and useless off-screen
            record["payload"] = None
        producer.send(topic, record)
        producer.flush()
        logger.debug(f"📤 Session event queued to Kafka: {notification.type}")
