import logging

from pythonjsonlogger.jsonlogger import JsonFormatter

logger = logging.getLogger(__name__)


# --- Custom Logging Filter ---
# Guarantees every record has a 'session_id' and a readable logger name before
# formatting, including records from third-party libraries such as azure-core.
class SessionLogFilter(logging.Filter):
    """
    A logging filter that ensures 'session_id' and a normalized 'name'
    are present on log records for consistent formatting.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_session_id = getattr(record, "session_id", None)
        record.session_id = "-" if current_session_id is None else str(current_session_id)

        current_logger_name = getattr(record, "name", None)
        if not current_logger_name or current_logger_name == "root":
            record.name = "DefaultLogger"
        else:
            record.name = str(current_logger_name)

        return True


def init_logging(
    level: int = logging.INFO,
    clear_existing_handlers: bool = True,
    json_format: bool = False,
) -> None:
    """
    Sets up console logging for docchat.

    Args:
        level: The desired logging level for the root logger.
        clear_existing_handlers: If True, removes any handlers already attached to the
                                 root logger so repeated setup does not duplicate output.
        json_format: Emit one JSON object per record instead of plain text.
    """
    root_logger = logging.getLogger()

    if clear_existing_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler()

    if json_format:
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(session_id)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - [%(name)s] [%(session_id)s] %(message)s"
        )
    stream_handler.setFormatter(formatter)
    stream_handler.addFilter(SessionLogFilter())

    root_logger.addHandler(stream_handler)
    root_logger.setLevel(level)

    # The Azure SDK logs every HTTP request at INFO
    if level > logging.DEBUG:
        logging.getLogger("azure").setLevel(logging.WARNING)

    logger.info(f"Logging setup complete. Root logger level set to {logging.getLevelName(level)}.")
