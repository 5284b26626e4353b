"""Token usage metering for model calls."""

import threading
from datetime import date
from typing import Dict, List


class TokenUsageLog:
    """Per-day token totals; called once per successful model round trip."""

    def __init__(self):
        self._totals: Dict[str, int] = {}
        self._lock = threading.Lock()

    def __call__(self, tokens: int):
        self.record(tokens)

    def record(self, tokens: int, day: date = None):
        key = (day or date.today()).isoformat()
        with self._lock:
            self._totals[key] = self._totals.get(key, 0) + int(tokens or 0)

    @property
    def total(self) -> int:
        return sum(self._totals.values())

    def records(self) -> List[Dict[str, object]]:
        return [{"date": day, "tokens": tokens} for day, tokens in sorted(self._totals.items())]
