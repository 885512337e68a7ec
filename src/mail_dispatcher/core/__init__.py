from mail_dispatcher.core.logging import configure_logging, sanitize_for_log
from mail_dispatcher.core.retry import RetryPolicy

__all__ = ["RetryPolicy", "configure_logging", "sanitize_for_log"]
