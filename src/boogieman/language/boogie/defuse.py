"""Def-use information for Boogie statements.

StatementDefUse maps a statement to the pair (defs, uses) of variable names
it writes and reads. It is the building block of the liveness and
definition analyses:

- assert/assume read their expression
- havoc writes its identifiers
- an assignment writes the base variable of each target and reads the
  right-hand sides; a map-element target ``M[i] := v`` also reads ``M``
  and the indexes
- a call reads its arguments and writes its assignment targets
- goto and return neither read nor write

Variables bound by a quantifier inside the statement are not reported.
"""

from boogieman.util.typedispatch import TypeDispatcher, dispatch, defaultdispatch
from boogieman.language.boogie import ast


def readNames(node, bound=frozenset()):
    """Yield the names of the free storage identifiers under ``node``."""
    if isinstance(node, ast.QuantifiedExpression):
        bound = bound | frozenset(name for var in node.variables for name in var.names)
    if isinstance(node, ast.StorageIdentifier) and node.name not in bound:
        yield node.name
    for child in node.enumerate_children():
        yield from readNames(child, bound)


def assignedIdentifier(lhs):
    """The identifier written by an assignment target such as ``M[i][j]``."""
    while isinstance(lhs, ast.MapSelect):
        lhs = lhs.map
    return lhs


class StatementDefUse(TypeDispatcher):
    @defaultdispatch
    def visitDefault(self, node):
        return frozenset(), frozenset()

    @dispatch(ast.AssertStatement, ast.AssumeStatement)
    def visitPredicate(self, node):
        return frozenset(), frozenset(readNames(node.expression))

    @dispatch(ast.HavocStatement)
    def visitHavocStatement(self, node):
        return frozenset(ident.name for ident in node.identifiers), frozenset()

    @dispatch(ast.AssignStatement)
    def visitAssignStatement(self, node):
        defs = set()
        uses = set()
        for lhs in node.lhs:
            defs.add(assignedIdentifier(lhs).name)
            if isinstance(lhs, ast.MapSelect):
                uses.update(readNames(lhs))
        for rhs in node.rhs:
            uses.update(readNames(rhs))
        return frozenset(defs), frozenset(uses)

    @dispatch(ast.CallStatement)
    def visitCallStatement(self, node):
        uses = set()
        for arg in node.arguments:
            uses.update(readNames(arg))
        return frozenset(ident.name for ident in node.assignments), frozenset(uses)


defuse = StatementDefUse()
