"""Shared utilities package for ondemand-chat"""

from .debug_console import (
    DebugCapturingConsole,
    create_debug_console,
    setup_debug_logging,
    setup_logging,
)

__all__ = [
    "DebugCapturingConsole",
    "create_debug_console",
    "setup_debug_logging",
    "setup_logging",
]
