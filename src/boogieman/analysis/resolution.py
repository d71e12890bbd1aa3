"""Name resolution for Boogie programs.

Binds the ``declaration`` reference of every identifier:

- storage identifiers: quantifier variables, body locals, procedure
  parameters and returns, function arguments, then global variables and
  constants
- function identifiers: function declarations
- procedure identifiers: procedure declarations
- label identifiers: the block carrying the label in the enclosing body

Identifiers inside attribute arguments are resolved in the scope of the
node carrying the attribute.

The pass also registers a Binder on the context. The Binder observes link
events and binds every subtree attached below a Program afterwards, so
nodes synthesized by later passes are bound as they are inserted.
"""

import logging

from boogieman.application.passmanager import AnalysisPass, NO_EFFECT
from boogieman.language.asttools.metaast import ASTNode, LINK
from boogieman.language.boogie import ast

LOG = logging.getLogger(__name__)


def declaredNames(decl):
    if isinstance(decl, ast.NameDeclaration):
        return decl.names
    return ()


def lookupNames(name, decls):
    for decl in decls:
        if name in declaredNames(decl):
            return decl
    return None


def scopeChain(node, anchor=None):
    yield from node.enumerate_ancestors()
    if anchor is not None and not isinstance(node.root(), ast.Program):
        yield from anchor.enumerate_ancestors()


def lookupStorage(name, node, anchor=None):
    for scope in scopeChain(node, anchor):
        if isinstance(scope, ast.QuantifiedExpression):
            found = lookupNames(name, scope.variables)
        elif isinstance(scope, ast.ProcedureDeclaration):
            found = lookupNames(name, scope.parameters) or lookupNames(name, scope.returns)
            if found is None and scope.body is not None:
                found = lookupNames(name, scope.body.locals)
        elif isinstance(scope, ast.FunctionDeclaration):
            found = lookupNames(name, scope.arguments)
        elif isinstance(scope, ast.Program):
            found = lookupNames(name, scope.declarations)
        else:
            continue
        if found is not None:
            return found
    return None


def lookupTopLevel(name, node, anchor, kind):
    for scope in scopeChain(node, anchor):
        if isinstance(scope, ast.Program):
            for decl in scope.declarations:
                if type(decl) is kind and decl.name == name:
                    return decl
            return None
    return None


def lookupLabel(name, node, anchor=None):
    for scope in scopeChain(node, anchor):
        if isinstance(scope, ast.Body):
            for block in scope.blocks:
                if name in block.names:
                    return block
            return None
    return None


def resolve(ident, anchor=None):
    """Find the declaration ``ident`` refers to, or None."""
    if isinstance(ident, ast.StorageIdentifier):
        return lookupStorage(ident.name, ident, anchor)
    elif isinstance(ident, ast.FunctionIdentifier):
        return lookupTopLevel(ident.name, ident, anchor, ast.FunctionDeclaration)
    elif isinstance(ident, ast.ProcedureIdentifier):
        return lookupTopLevel(ident.name, ident, anchor, ast.ProcedureDeclaration)
    elif isinstance(ident, ast.LabelIdentifier):
        return lookupLabel(ident.name, ident, anchor)
    return None


def bind(tree, anchor=None):
    """Bind every identifier in ``tree``, attribute arguments included.

    Returns:
        list: The identifiers left unbound.
    """
    unbound = []
    for node in tree.enumerate():
        if isinstance(node, ast.Identifier):
            node.declaration = resolve(node, anchor)
            if node.declaration is None:
                unbound.append(node)

        for values in node.attributes.values():
            for value in values:
                if isinstance(value, ASTNode):
                    unbound.extend(bind(value, node))
    return unbound


class Binder(object):
    """Observer binding subtrees as they are linked below a Program."""

    def notify(self, event, parent, node):
        if event == LINK and isinstance(parent.root(), ast.Program):
            bind(node)


BINDER = Binder()


class Resolution(AnalysisPass):
    """Bind identifiers to their declarations."""
    name = "resolution"
    description = "Resolve identifiers to their declarations."

    def __init__(self, context, results=None):
        AnalysisPass.__init__(self, context, results)
        self.unbound = []

    def run(self, program):
        self.context.observe(BINDER)
        unbound = bind(program)
        for ident in unbound:
            LOG.debug("unresolved identifier %s", ident.name)
        self.unbound.extend(unbound)
        return NO_EFFECT
