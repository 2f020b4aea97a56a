import threading
from datetime import date
from typing import NamedTuple

from loguru import logger

from rewardcap.domain.models import CapUsage


class UsageKey(NamedTuple):
    payment_method_id: str
    scope_id: str
    period_start: date


class UsageCache:
    def __init__(self) -> None:
        self._entries: dict[UsageKey, CapUsage] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def generation(self, payment_method_id: str) -> int:
        with self._lock:
            return self._generation(payment_method_id)

    def _generation(self, payment_method_id: str) -> int:
        # Both counters only grow, so their sum changes on every invalidation.
        return self._epoch + self._generations.get(payment_method_id, 0)

    def get(self, key: UsageKey) -> CapUsage | None:
        with self._lock:
            usage = self._entries.get(key)
        logger.debug("Usage cache {} for {}", "hit" if usage is not None else "miss", key)
        return usage

    def put(self, key: UsageKey, usage: CapUsage, generation: int) -> bool:
        with self._lock:
            if self._generation(key.payment_method_id) != generation:
                logger.debug("Dropping stale usage for {}", key)
                return False
            self._entries[key] = usage
            return True

    def invalidate(self, payment_method_id: str) -> int:
        with self._lock:
            self._generations[payment_method_id] = self._generations.get(payment_method_id, 0) + 1
            stale = [key for key in self._entries if key.payment_method_id == payment_method_id]
            for key in stale:
                del self._entries[key]
        logger.debug("Invalidated {} usage entries for {}", len(stale), payment_method_id)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._epoch += 1
