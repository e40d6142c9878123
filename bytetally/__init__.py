"""bytetally - durable, debounced byte-usage counter."""

__version__ = "0.1.0"

from bytetally.tracker.usage import DataUsageTracker  # noqa: E402

__all__ = ["DataUsageTracker", "__version__"]
