from .context import get_log_context, log_context, reset_context, set_context
from .setup import LogOptions, configure_logging

__all__ = ["LogOptions", "configure_logging", "get_log_context", "set_context", "reset_context", "log_context"]
