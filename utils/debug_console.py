"""Debug logging setup and a Rich console that mirrors output to the log.

When debug mode is enabled every line the chat CLI prints is also written,
without markup, to the debug log file next to the library log records.
"""

import io
import logging
import os
import re
from typing import Optional
from rich.console import Console as RichConsole

DEBUG_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')


class DebugCapturingConsole(RichConsole):
    """
    Rich Console that also captures all output to a debug logger.
    """

    def __init__(self, debug_logger: Optional[logging.Logger] = None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.debug_logger = debug_logger
        self._log_prefix = "[CONSOLE] "

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)

        if self.debug_logger and self.debug_logger.isEnabledFor(logging.DEBUG):
            plain_text = self._render_to_plain_text(*objects, **kwargs)
            if plain_text.strip():
                self.debug_logger.debug(f"{self._log_prefix}{plain_text}")

    def _render_to_plain_text(self, *objects, **kwargs) -> str:
        """Render the objects the way print would, minus markup and ANSI codes"""
        string_buffer = io.StringIO()
        temp_console = RichConsole(
            file=string_buffer,
            force_terminal=False,
            width=self.width,
            legacy_windows=False
        )
        temp_console.print(*objects, **kwargs)
        return ANSI_ESCAPE.sub('', string_buffer.getvalue()).rstrip()


def create_debug_console(debug_enabled: bool = False,
                        debug_logger: Optional[logging.Logger] = None) -> RichConsole:
    """
    Create appropriate console instance based on debug mode.

    Args:
        debug_enabled: Whether debug mode is enabled
        debug_logger: Logger instance for debug output

    Returns:
        DebugCapturingConsole if debug enabled, regular Console otherwise
    """
    if debug_enabled and debug_logger:
        return DebugCapturingConsole(debug_logger=debug_logger)
    else:
        return RichConsole()


def setup_debug_logging(log_file: str = "chat_debug.log") -> logging.Logger:
    """
    Route all log records to ``log_file`` at DEBUG level, warnings also to stderr.

    Args:
        log_file: Path to debug log file (appended to)

    Returns:
        Dedicated logger for captured console output
    """
    log_path = os.path.abspath(log_file)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
    root_logger.addHandler(file_handler)

    # Only problems reach the terminal; the chat prompt shares it
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
    root_logger.addHandler(stream_handler)

    # Console output goes through its own logger so it is not echoed twice
    console_logger = logging.getLogger("debug_console")
    console_logger.setLevel(logging.DEBUG)
    for handler in console_logger.handlers[:]:
        console_logger.removeHandler(handler)
    console_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    console_logger.addHandler(console_handler)
    console_logger.propagate = False

    logging.getLogger(__name__).info(f"Debug logging enabled - appending to {log_path}")
    return console_logger


def setup_logging(level: str = "info") -> None:
    """Configure plain stderr logging for non-debug runs"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=DEBUG_LOG_FORMAT,
    )
