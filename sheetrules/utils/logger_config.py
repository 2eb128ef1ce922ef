import logging
from typing import Optional, Union


class EmojiFormatter(logging.Formatter):
    """
    A log formatter that prefixes each message with an emoji for its level.
    """

    LEVEL_EMOJIS = {
        logging.DEBUG: "🐛",
        logging.INFO: "✅",
        logging.WARNING: "⚠️",
        logging.ERROR: "❌",
        logging.CRITICAL: "❌",
    }

    def format(self, record):
        s = super().format(record)
        emoji = self.LEVEL_EMOJIS.get(record.levelno, "")
        return f"{emoji} {s}"


def setup_logging(level: Optional[Union[int, str]] = None):
    """
    Configures the root logger with the EmojiFormatter.
    Call once at the application's entry point; engine modules only log.

    Args:
        level: Root log level (name or number); DEBUG when omitted
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if level is None else level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(EmojiFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    # Avoid duplicate output when called twice
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(console_handler)
