"""Pipeline runtime context."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from time import perf_counter


def new_request_id() -> str:
    return f"req-{uuid.uuid4().hex[:16]}"


@dataclass(slots=True)
class RequestContext:
    request_id: str
    route: str
    model: str = ""
    started_at: float = field(default_factory=perf_counter)
    steps_done: list[str] = field(default_factory=list)
    extracted_chars: int = 0

    def mark(self, step: str) -> None:
        self.steps_done.append(step)

    def elapsed_ms(self) -> float:
        return round((perf_counter() - self.started_at) * 1000, 2)
