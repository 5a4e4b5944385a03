"""
Lumo REPL Package

Incremental evaluation of Lumo statements against a persistent module
scope and a persistent JavaScript runtime.

Author: xwest
"""

from .session import ReplSession, ReplResult, ReplState, HELP_TEXT
from .runtime import NodeRuntime, Runtime, RuntimeReply, RuntimeBridgeError

__all__ = [
    "ReplSession",
    "ReplResult",
    "ReplState",
    "HELP_TEXT",
    "NodeRuntime",
    "Runtime",
    "RuntimeReply",
    "RuntimeBridgeError",
]
