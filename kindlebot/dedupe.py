from __future__ import annotations

import threading
from collections import OrderedDict


class UpdateCache:
    """Remembers recently handled Telegram update ids.

    Telegram re-delivers an update when the webhook is slow to answer; the
    cache only covers one process, which is enough to absorb those retries.
    """

    def __init__(self, max_size: int = 1000) -> None:
        self.max_size = max_size
        self._ids: "OrderedDict[int, None]" = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, update_id: int) -> bool:
        with self._lock:
            if update_id in self._ids:
                return True
            self._ids[update_id] = None
            while len(self._ids) > self.max_size:
                self._ids.popitem(last=False)
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def __contains__(self, update_id: object) -> bool:
        with self._lock:
            return update_id in self._ids
