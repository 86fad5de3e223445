"""
Mail delivery agent filter for the MailChannels send API.

Thin entry point that reads one message from standard input and delegates to
MessageProcessor. Exactly one send attempt is made; any failure is logged and
the process exits with status 1.
"""

import logging
import os
import sys
from typing import BinaryIO, Optional

from config import load_config
from domain.errors import MdaError
from domain.message_processor import MessageProcessor

logger = logging.getLogger()

DEFAULT_LOG_LEVEL = 'WARNING'


def configure_logging(level: Optional[str] = None) -> None:
    """
    Send log records to stderr.

    Args:
        level: Level name; defaults to $LOG_LEVEL, then WARNING
    """
    level_name = (level or os.environ.get('LOG_LEVEL') or DEFAULT_LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, level_name, logging.WARNING))

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter('%(levelname)s - %(message)s')
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)


def main(stdin: Optional[BinaryIO] = None) -> int:
    """
    Deliver the message on standard input.

    Args:
        stdin: Binary stream to read instead of sys.stdin

    Returns:
        int: 0 when the provider accepted the message, 1 otherwise
    """
    configure_logging()

    try:
        config = load_config()
        email_content = (stdin if stdin is not None else sys.stdin.buffer).read()
        logger.info(f"Read {len(email_content):,} bytes from stdin")

        result = MessageProcessor(config).process(email_content)
    except MdaError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        return 1

    logger.info(f"Delivery complete: {result!r}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
