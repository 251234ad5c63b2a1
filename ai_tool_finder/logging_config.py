"""Logging configuration for the AI tool finder."""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

LOG_FILE_NAME = "tool_finder.log"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
STREAM_FORMAT = "%(name)s - %(levelname)s - %(message)s"

# Marks handlers installed by setup_logging so a second call replaces them.
_HANDLER_ATTR = "_tool_finder_handler"


class IndentLogger:
    """Logger wrapper that nests messages under the section that emits them."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._indent = 0

    def indent(self) -> None:
        self._indent += 1

    def dedent(self) -> None:
        self._indent = max(0, self._indent - 1)

    @contextmanager
    def section(self, title: str) -> Iterator["IndentLogger"]:
        """Log ``title`` and indent everything logged inside the block.

        The indent is restored even when the block raises.
        """
        self.info(title)
        self.indent()
        try:
            yield self
        finally:
            self.dedent()

    def _log(self, level: int, msg: str, *args, **kwargs) -> None:
        indent = "  " * self._indent
        prefix = "•" if self._indent > 0 else "▶"
        self._logger.log(level, f"{indent}{prefix} {msg}", *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(log_level: str = "INFO", log_dir: Path = Path("logs")) -> None:
    """Send logs to ``log_dir/tool_finder.log`` and stdout.

    Safe to call more than once (uvicorn reload, repeated CLI invocations in one
    process): handlers from an earlier call are closed and replaced.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            root_logger.removeHandler(handler)
            handler.close()

    file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(STREAM_FORMAT))
    stream_handler.setLevel(logging.INFO)

    for handler in (file_handler, stream_handler):
        setattr(handler, _HANDLER_ATTR, True)
        root_logger.addHandler(handler)

    # OpenAI SDK request chatter
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
