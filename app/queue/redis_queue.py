"""
Redis-backed job queue.

Keys (prefix q:<name>):
    :pending     list of JSON messages, RPUSH on enqueue, LPOP on dequeue
    :leases      sorted set message -> lease deadline (unix seconds)
    :deliveries  hash message id -> delivery count
    :receipts    hash message id -> receipt of the current lease
Pop-and-lease and ack run as Lua scripts so they are atomic.
"""
import json
import time
from typing import Any
from uuid import uuid4

import redis

from app.queue.base import Delivery, JobQueue


_POP_SCRIPT = """
local expired = redis.call('ZRANGEBYSCORE', KEYS[2], '-inf', ARGV[1], 'LIMIT', 0, 100)
for _, m in ipairs(expired) do
  redis.call('ZREM', KEYS[2], m)
  redis.call('LPUSH', KEYS[1], m)
end
local m = redis.call('LPOP', KEYS[1])
if not m then
  return nil
end
redis.call('ZADD', KEYS[2], tonumber(ARGV[1]) + tonumber(ARGV[2]), m)
local id = cjson.decode(m)['id']
local n = redis.call('HINCRBY', KEYS[3], id, 1)
redis.call('HSET', KEYS[4], id, ARGV[3])
return {m, n}
"""

_ACK_SCRIPT = """
if redis.call('HGET', KEYS[3], ARGV[2]) ~= ARGV[3] then
  return 0
end
redis.call('ZREM', KEYS[1], ARGV[1])
redis.call('HDEL', KEYS[2], ARGV[2])
redis.call('HDEL', KEYS[3], ARGV[2])
return 1
"""


class RedisJobQueue(JobQueue):
    def __init__(
        self,
        client: redis.Redis,
        name: str,
        visibility_timeout: float = 900.0,
        poll_interval: float = 0.5,
    ) -> None:
        self.client = client
        self.name = name
        self.visibility_timeout = visibility_timeout
        self.poll_interval = poll_interval
        prefix = f"q:{name}"
        self._pending_key = f"{prefix}:pending"
        self._leases_key = f"{prefix}:leases"
        self._deliveries_key = f"{prefix}:deliveries"
        self._receipts_key = f"{prefix}:receipts"
        self._pop = client.register_script(_POP_SCRIPT)
        self._ack = client.register_script(_ACK_SCRIPT)

    @classmethod
    def from_url(cls, url: str, name: str, **kwargs: Any) -> "RedisJobQueue":
        return cls(redis.Redis.from_url(url, decode_responses=True), name, **kwargs)

    def enqueue(self, job_id: str, job_type: str, payload: dict[str, Any]) -> str:
        message_id = uuid4().hex
        message = json.dumps(
            {"id": message_id, "job_id": job_id, "job_type": job_type, "payload": payload},
            separators=(",", ":"),
        )
        self.client.rpush(self._pending_key, message)
        return message_id

    def dequeue(self, timeout: float | None = None) -> Delivery | None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            delivery = self._try_pop()
            if delivery is not None:
                return delivery
            if deadline is not None and time.monotonic() >= deadline:
                return None
            time.sleep(self.poll_interval)

    def ack(self, delivery: Delivery) -> bool:
        res = self._ack(
            keys=[self._leases_key, self._deliveries_key, self._receipts_key],
            args=[delivery.raw, delivery.message_id, delivery.receipt],
        )
        return int(res or 0) == 1

    def size(self) -> int:
        return int(self.client.llen(self._pending_key))

    def close(self) -> None:
        self.client.close()

    def _try_pop(self) -> Delivery | None:
        receipt = uuid4().hex
        res = self._pop(
            keys=[self._pending_key, self._leases_key, self._deliveries_key, self._receipts_key],
            args=[time.time(), self.visibility_timeout, receipt],
        )
        if not res:
            return None
        raw, count = res[0], int(res[1])
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        message = json.loads(raw)
        return Delivery(
            message_id=message["id"],
            job_id=message["job_id"],
            job_type=message["job_type"],
            payload=message.get("payload") or {},
            delivery_count=count,
            receipt=receipt,
            raw=raw,
        )
