"""Timing instrumentation for upload operations."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any
from typing import AsyncGenerator


logger = logging.getLogger(__name__)


@asynccontextmanager
async def async_timing_context(
    operation: str, *, log_threshold_ms: float = 0.0, extra: dict[str, Any] | None = None
) -> AsyncGenerator[dict[str, Any], None]:
    """Async context manager for timing async operations.

    Args:
        operation: Name of the operation being timed
        log_threshold_ms: Only log if duration exceeds this threshold (ms). 0 = always log.
        extra: Additional context to include in log

    Yields:
        Timing dict with 'start' field, will have 'duration_ms' on exit

    Example:
        async with async_timing_context("assemble_parts", extra={"filename": name}) as t:
            combined = await assembler.complete(manifest)
        # Logs: "TIMING assemble_parts duration_ms=42.3 filename=report.pdf"
    """
    ctx: dict[str, Any] = {"start": time.perf_counter()}
    if extra:
        ctx.update(extra)

    try:
        yield ctx
    finally:
        duration_ms = (time.perf_counter() - ctx["start"]) * 1000.0
        ctx["duration_ms"] = duration_ms

        if duration_ms >= log_threshold_ms:
            extra_str = " ".join(f"{k}={v}" for k, v in (extra or {}).items())
            logger.info(f"TIMING {operation} duration_ms={duration_ms:.2f} {extra_str}".strip())
