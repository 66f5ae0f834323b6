"""Dev-server log monitoring and the per-framework error cache."""

from monitoring.classifier import classify_line, is_error
from monitoring.error_cache import ErrorCacheStore
from monitoring.log_monitor import LogMonitor

__all__ = ["ErrorCacheStore", "LogMonitor", "classify_line", "is_error"]
