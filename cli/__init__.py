"""CLI package for the On-Demand chat client

Provides an interactive terminal chat on top of the conversation core.
"""

from cli.chat_app import ChatCLI
from cli.main import main

__all__ = [
    "ChatCLI",
    "main",
]
