"""Utility modules and functions for upload_relay."""

from upload_relay.utils.env import env  # noqa: F401
from upload_relay.utils.env import split_csv  # noqa: F401
from upload_relay.utils.timing import async_timing_context  # noqa: F401


__all__ = [
    "env",
    "split_csv",
    "async_timing_context",
]
