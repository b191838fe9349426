"""Utility modules."""

from tldw.utils.async_utils import run_async

__all__ = ["run_async"]
