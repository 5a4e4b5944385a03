"""
Lumo Tree Shaker Package

Removes top-level declarations that nothing reachable refers to.

Author: xwest
"""

from .tree_shaker import TreeShaker, ShakeResult, shake_program

__all__ = [
    "TreeShaker",
    "ShakeResult",
    "shake_program",
]
