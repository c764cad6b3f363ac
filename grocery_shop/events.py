# grocery_shop/events.py
import json
import logging

import aio_pika

from grocery_shop.config import RABBITMQ_URL, EVENTS_QUEUE

logger = logging.getLogger(__name__)


async def publish_event(event: str, payload: dict):
    """
    Publish a shop event to RabbitMQ.
    :param event: Event name, e.g. ``order_placed``
    :param payload: JSON-serialisable event data
    """
    message = {"event": event, **payload}
    if not RABBITMQ_URL:
        logger.info("Event %s (broker disabled): %s", event, message)
        return False
    try:
        connection = await aio_pika.connect_robust(RABBITMQ_URL)
        async with connection:
            channel = await connection.channel()
            await channel.declare_queue(EVENTS_QUEUE, durable=True)
            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=json.dumps(message, default=str).encode(),
                    content_type="application/json",
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key=EVENTS_QUEUE,
            )
    except aio_pika.exceptions.AMQPError as e:
        logger.error("Could not publish %s: %s", event, e)
        return False
    except OSError as e:
        logger.error("RabbitMQ not available for %s: %s", event, e)
        return False
    return True
