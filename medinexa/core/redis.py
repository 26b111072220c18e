import json

import redis.asyncio as redis
from redis.exceptions import RedisError

from medinexa.core.config import settings
from medinexa.core.logger import logger

class RedisClient:
    def __init__(self):
        self.redis = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    @staticmethod
    def queue_channel(clinic_id: str) -> str:
        return f"queue:{clinic_id}"

    async def publish_queue_event(self, clinic_id: str, event: str, payload: dict) -> int:
        """Publish a queue change for subscribers of one clinic.

        Delivery is best effort: the change is already committed, so a
        broker failure is logged and reported as zero receivers.
        """
        if not settings.QUEUE_EVENTS_ENABLED:
            return 0
        message = json.dumps({"event": event, "clinic_id": clinic_id, **payload}, default=str)
        try:
            return await self.redis.publish(self.queue_channel(clinic_id), message)
        except RedisError as exc:
            logger.warning(f"Queue event {event} for clinic {clinic_id} not published: {exc}")
            return 0

    async def close(self):
        await self.redis.close()

redis_client = RedisClient()
