"""Rendered-page fetching: the capability interface and its Playwright backend."""

from staywatch.fetcher.base import (
    LoadOptions,
    PageFetcher,
    PageSession,
    classify_fetch_error,
    is_retryable,
)

__all__ = [
    "LoadOptions",
    "PageFetcher",
    "PageSession",
    "classify_fetch_error",
    "is_retryable",
]
