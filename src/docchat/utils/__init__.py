from .logging import SessionLogFilter, init_logging

__all__ = ["SessionLogFilter", "init_logging"]
