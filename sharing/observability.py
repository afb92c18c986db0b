# Step timing and log-safe rendering of capability URIs

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit
import time

from loguru import logger


@dataclass
class StepSpan:
    """Timing for one step of an issuance request."""
    span_id: str
    step: str
    start_time: float
    end_time: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time


@contextmanager
def trace_step(request_id: str, step: str, metadata: Optional[Dict[str, Any]] = None):
    """Context manager timing one pipeline step."""
    span = StepSpan(
        span_id=f"{request_id}_{step}",
        step=step,
        start_time=time.perf_counter(),
        metadata=metadata or {},
    )
    try:
        yield span
    finally:
        span.end_time = time.perf_counter()
        logger.debug(f"Step {span.span_id} finished in {span.duration:.3f}s")


def redact_uri(uri: str) -> str:
    """Drop the signature query so a capability is never written to logs."""
    parts = urlsplit(uri)
    if not parts.query:
        return uri
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "<redacted>", ""))
