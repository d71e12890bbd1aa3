"""
AST tools package for boogieman.

The generic node framework (slots, linking, observers, traversal and
structural mutation) lives in ``metaast``.
"""

from .metaast import ASTNode, Where, observing

__all__ = [
    "ASTNode",
    "Where",
    "observing",
]
