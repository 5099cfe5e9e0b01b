"""
carwash/services/events.py

Event emitter: pushes booking events to a Redis queue for the notification
workers (email/SMS delivery lives there, not here).

Queue:
- events:p2p: instant delivery (booking notifications to the customer)

Emitting is fire-and-forget: failures are logged and never reach the
booking that triggered them.
"""

import json
import logging
import time

from redis import Redis

from ..schemas.bookings import BookingRead

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


class EventNotifier:
    """Publishes booking lifecycle events."""

    def __init__(self, redis: Redis, queue: str = P2P_QUEUE):
        self.redis = redis
        self.queue = queue

    def emit_event(self, event_type: str, payload: dict) -> bool:
        """
        Emit a p2p event (instant delivery).

        Pushed to the Redis list for the consumer loop.
        """
        event = {
            "type": event_type,
            **payload,
            "ts": int(time.time()),
        }
        try:
            self.redis.rpush(self.queue, json.dumps(event, default=str))
            logger.info(f"Event emitted: {event_type} → {self.queue}")
            return True
        except Exception as e:
            logger.error(f"Failed to emit event {event_type}: {e}")
            return False

    def notify_booking_created(self, booking: BookingRead) -> bool:
        return self.emit_event("booking_created", {
            "booking_id": booking.id,
            "confirmation_code": booking.confirmation_code,
            "service_id": booking.service_id,
            "date": booking.date.isoformat(),
            "start_time": booking.start_time,
            "customer_email": booking.customer_email,
            "customer_phone": booking.customer_phone,
        })

    def notify_booking_status_changed(self, booking: BookingRead) -> bool:
        return self.emit_event("booking_status_changed", {
            "booking_id": booking.id,
            "status": booking.status.value,
            "reason": booking.cancel_reason,
            "customer_email": booking.customer_email,
        })

    def notify_booking_rescheduled(self, booking: BookingRead) -> bool:
        return self.emit_event("booking_rescheduled", {
            "booking_id": booking.id,
            "date": booking.date.isoformat(),
            "start_time": booking.start_time,
            "customer_email": booking.customer_email,
        })
