from __future__ import annotations
import time
from dataclasses import dataclass, field


class Timer:
    def __enter__(self):
        self._t0 = time.perf_counter()
        self.ms = 0
        return self

    def __exit__(self, exc_type, exc, tb):
        self.ms = int((time.perf_counter() - self._t0) * 1000)


@dataclass
class SearchStats:
    """Per-request counters, exported as span attributes and logged once."""
    joined: int = 0
    priced: int = 0
    filtered: int = 0
    stage_ms: dict[str, int] = field(default_factory=dict)

    def as_attributes(self) -> dict[str, int]:
        attrs = {
            "search.joined": self.joined,
            "search.priced": self.priced,
            "search.filtered": self.filtered,
        }
        for stage, ms in self.stage_ms.items():
            attrs[f"search.{stage}_ms"] = ms
        return attrs
