"""
Self-composition: the shadow product of a Boogie program.

The product program runs two copies of every procedure side by side. The
second copy works on shadow variables, ``x.shadow`` for each variable ``x``,
and the global ``$shadow_ok`` records whether every equality the two runs
must agree on has held so far. Verifying the product proves a 2-safety
property of the original, such as constant-time execution.

For each procedure that is not exempt, the pass:

1. inserts ``<name>.cross_product`` after it, with a shadow twin after every
   parameter, return and local;
2. walks the blocks of the product. A block whose first statement carries
   ``{:selfcomp entry, exit}`` is a self-composition point: a shadowed copy
   of the block is spliced in before the block labelled ``exit``, and the
   original block jumps to it instead of to ``exit``. Every other block is
   run in lock step with its shadow:

   - loads and stores assert equal addresses before the access
   - assignments, havocs (with a following assume) are shadowed after
   - calls to exempt procedures copy their results to the shadows
   - other calls go to the callee's product, with shadow arguments and
     results following their originals
   - calls to magic procedures also assert equal scalar arguments
   - a two-way goto asserts equal branch conditions, taken from the
     ``{:branchcond c}`` annotation on the statement before it

3. adds ``requires`` clauses for ``public_in`` specifications, equality
   checks for ``public_out`` and equality assumptions for
   ``declassified_out`` before every return, and initializes and checks
   ``$shadow_ok`` in entry points;
4. prepends shadow invariants to every loop header.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Set

from boogieman.analysis.cfg import terminator
from boogieman.application.errors import ConfigurationError, UnsupportedProgram
from boogieman.application.passmanager import TransformationPass, Changed
from boogieman.language.boogie import ast

LOG = logging.getLogger(__name__)

SHADOW_SUFFIX = ".shadow"
PRODUCT_SUFFIX = ".cross_product"
SHADOW_OK = "$shadow_ok"

EXEMPTION_LIST = [
    r"\$alloc",
    r"\$free",
    "boogie_si_",
    "__VERIFIER_",
    "__SMACK_",
    "llvm.dbg",
    r"\$initialize",
]

MAGIC_LIST = [
    r"\$alloc",
    r"\$free",
    r"\$memset.i8",
    r"\$memcpy.i8",
    r"\$memcmp.i8",
]

EXEMPTIONS = re.compile("|".join(EXEMPTION_LIST))
MAGICS = re.compile("|".join(MAGIC_LIST))
ACCESSES = re.compile(r"\$(load|store)")

ANNOTATIONS = ("public_in", "public_out", "declassified_out")


def shadow(name):
    return name + SHADOW_SUFFIX


def unshadow(name):
    if name.endswith(SHADOW_SUFFIX):
        return name[:-len(SHADOW_SUFFIX)]
    return name


def isExempt(name):
    return EXEMPTIONS.search(name) is not None


def isMagic(name):
    return MAGICS.search(name) is not None


def nameOf(value):
    """The name in an annotation argument: an identifier or a string."""
    if isinstance(value, ast.Identifier):
        return value.name
    elif isinstance(value, str):
        return value
    raise ConfigurationError("Expected a name in annotation, found %r" % (value,))


def expressionOf(value):
    if isinstance(value, ast.Expression):
        return value
    raise ConfigurationError("Expected an expression in annotation, found %r" % (value,))


def integerOf(value):
    if isinstance(value, ast.IntegerLiteral):
        return value.value
    elif isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ConfigurationError("Expected an integer in annotation, found %r" % (value,))


def shadowDeclaration(decl):
    return type(decl)([shadow(name) for name in decl.names], decl.type.copy())


def keepsName(ident):
    decl = ident.declaration
    return decl is not None and (isinstance(decl, ast.ConstantDeclaration) or
                                 isinstance(decl.parent, ast.QuantifiedExpression))


def shadowCopy(node):
    """Copy ``node``, renaming storage identifiers to their shadows.

    Constants and quantifier-bound variables keep their names.
    """
    copy = node.copy()
    for expr in copy.enumerate():
        if isinstance(expr, ast.StorageIdentifier) and not keepsName(expr):
            expr.name = shadow(expr.name)
            expr.declaration = None
    return copy


def unshadowCopy(node):
    copy = node.copy()
    for expr in copy.enumerate():
        if isinstance(expr, ast.StorageIdentifier) and expr.name.endswith(SHADOW_SUFFIX):
            expr.name = unshadow(expr.name)
            expr.declaration = None
    return copy


def equality(lhs, rhs):
    return ast.BinaryExpression(lhs, "==", rhs)


def shadowEquality(expr):
    return equality(expr.copy(), shadowCopy(expr))


def shadowAssert(expr):
    """``$shadow_ok := $shadow_ok && expr;``"""
    return ast.AssignStatement(
        [ast.StorageIdentifier(SHADOW_OK)],
        [ast.BinaryExpression(ast.StorageIdentifier(SHADOW_OK), "&&", expr)])


def accesses(stmt):
    """Yield the address argument of every load and store in ``stmt``."""
    for expr in stmt.enumerate():
        if not isinstance(expr, ast.FunctionApplication):
            continue
        if not isinstance(expr.function, ast.Identifier):
            continue
        if ACCESSES.search(expr.function.name) and len(expr.arguments) > 1:
            yield expr.arguments[1]


def loadApplication(load, map_name, addr):
    return ast.FunctionApplication(ast.FunctionIdentifier(nameOf(load)),
                                   [ast.StorageIdentifier(map_name), addr])


def loads(annotation):
    """Yield (original, shadow) expression pairs described by an annotation.

    The annotation arguments are ``load[, map, addr[, stride, length]]``:
    a plain expression, one element ``load(map, addr)`` of a memory map, or
    ``length / stride`` elements ``load(map, addr + i * stride)``.
    """
    if len(annotation) not in (1, 3, 5):
        raise ConfigurationError("Malformed load annotation with %d arguments"
                                 % len(annotation))

    if len(annotation) == 1:
        load = expressionOf(annotation[0])
        yield load.copy(), shadowCopy(load)
        return

    load, map_expr, addr = annotation[:3]
    map_name = nameOf(map_expr)
    addr = expressionOf(addr)

    if len(annotation) == 3:
        yield (loadApplication(load, map_name, addr.copy()),
               loadApplication(load, shadow(map_name), shadowCopy(addr)))
        return

    stride, length = integerOf(annotation[3]), integerOf(annotation[4])
    if stride <= 0:
        raise ConfigurationError("Load annotation stride must be positive, found %d" % stride)

    for i in range(length // stride):
        offset = i * stride
        yield (loadApplication(load, map_name,
                               ast.BinaryExpression(addr.copy(), "+",
                                                    ast.IntegerLiteral(offset))),
               loadApplication(load, shadow(map_name),
                               ast.BinaryExpression(shadowCopy(addr), "+",
                                                    ast.IntegerLiteral(offset))))


def annotatedSpecifications(proc):
    annotations = {name: [] for name in ANNOTATIONS}
    for spec in proc.specifications:
        for name in ANNOTATIONS:
            values = spec.get_attribute(name)
            if values is not None:
                annotations[name].append(values)
    return annotations


def addShadowVariables(proc):
    for decl in list(proc.parameters) + list(proc.returns):
        decl.insert_after(shadowDeclaration(decl))
    if proc.body is not None:
        for decl in list(proc.body.locals):
            decl.insert_after(shadowDeclaration(decl))


def ensureReturn(body):
    """Give a body whose last block falls off the end an explicit return."""
    if body.blocks and terminator(body.blocks[-1]) is None:
        body.blocks[-1].append_children("statements", ast.ReturnStatement())


def argumentType(expr):
    if isinstance(expr, ast.StorageIdentifier) and \
            isinstance(expr.declaration, ast.NameDeclaration):
        return expr.declaration.type
    return None


def isReference(node_type):
    return isinstance(node_type, ast.CustomType) and node_type.name == "ref"


def invariant(expr, kind):
    return ast.AssertStatement(expr, attributes={kind: []})


def shadowInvariant(name, kind):
    return invariant(equality(ast.StorageIdentifier(name),
                              ast.StorageIdentifier(shadow(name))), kind)


@dataclass
class SelfComposition:
    """A self-composition point: ``block`` is spliced in before ``exit``."""
    exit: str
    block: ast.Block
    equalities: List[ast.Expression] = field(default_factory=list)


@dataclass
class ProductSummary:
    """What the product construction recorded for one procedure."""
    name: str
    equalities: Dict[str, ast.Expression] = field(default_factory=dict)
    arguments: List[ast.Expression] = field(default_factory=list)
    compositions: List[SelfComposition] = field(default_factory=list)
    equality_dependencies: Set[str] = field(default_factory=set)
    pointer_dependencies: Set[str] = field(default_factory=set)
    value_dependencies: Set[str] = field(default_factory=set)

    def addEqualities(self, exprs):
        for expr in exprs:
            self.equalities.setdefault(str(expr), expr)


class Shadowing(TransformationPass):
    name = "shadowing"
    depends = ("resolution", "loop_identification",
               "definition_localization", "liveness")
    description = "Construct the shadow product program."

    def __init__(self, context, results=None):
        TransformationPass.__init__(self, context, results)
        self.products: Dict[ast.Program, Dict[str, ProductSummary]] = {}

    def run(self, program):
        for var in program.global_variables:
            var.insert_after(shadowDeclaration(var))
        program.prepend_children("declarations",
                                 ast.VariableDeclaration([SHADOW_OK], ast.BooleanType()))

        for decl in list(program.declarations):
            if not isinstance(decl, ast.ProcedureDeclaration) or isExempt(decl.name):
                continue
            self.product(program, decl)

        return Changed(True)

    def product(self, program, decl):
        LOG.debug("building the product of %s", decl.name)

        product = decl.copy()
        decl.insert_after(product)
        decl.remove_attribute("entrypoint")

        product.name = decl.name + PRODUCT_SUFFIX
        addShadowVariables(product)

        if product.body is None:
            if any(annotatedSpecifications(product).values()):
                self.warn("procedure %s has no body; its annotations are ignored", decl.name)
            return None

        summary = ProductSummary(decl.name)
        pending = {}

        for block in list(product.body.blocks):
            for label in block.names:
                shadows = pending.pop(label, ())
                if shadows:
                    block.insert_before(*shadows)

            composition = self.selfComposition(block)
            if composition is not None:
                pending.setdefault(composition.exit, []).append(composition.block)
                summary.compositions.append(composition)
                summary.addEqualities(composition.equalities)
            else:
                equalities, arguments = self.crossProductBlock(product, block)
                summary.addEqualities(equalities)
                summary.arguments.extend(arguments)

        if pending:
            raise UnsupportedProgram("No block labelled %s follows its self-composition "
                                     "point in %s" % (", ".join(sorted(pending)), decl.name))

        ensureReturn(product.body)
        self.addAssertions(product, summary)
        self.addLoopInvariants(program, product, summary)

        self.products.setdefault(program, {})[decl.name] = summary
        return summary

    def selfComposition(self, block):
        if not block.statements:
            return None

        first = block.statements[0]
        values = first.get_attribute("selfcomp")
        if values is None:
            return None
        if len(values) != 2:
            raise UnsupportedProgram("selfcomp annotation needs entry and exit labels: %s"
                                     % first)

        entry, exit = nameOf(values[0]), nameOf(values[1])
        first.remove()
        shadow_block = shadowCopy(block)

        for label in list(block.enumerate()):
            if isinstance(label, ast.LabelIdentifier) and label.name == exit:
                label.replace_with(ast.LabelIdentifier(shadow(entry)))

        shadow_block.names = [shadow(name) for name in shadow_block.names]
        for label in list(shadow_block.enumerate()):
            if isinstance(label, ast.LabelIdentifier) and label.name != exit:
                label.replace_with(ast.LabelIdentifier(shadow(label.name)))

        equalities = []
        for stmt in list(shadow_block.statements):
            if not isinstance(stmt, ast.AssumeStatement):
                continue
            values = stmt.get_attribute("branchcond")
            if not values:
                continue
            expr = unshadowCopy(expressionOf(values[0]))
            stmt.insert_after(shadowAssert(shadowEquality(expr)))
            equalities.append(expr)

        return SelfComposition(exit, shadow_block, equalities)

    def crossProductBlock(self, product, block):
        equalities = []
        arguments = []

        for stmt in list(block.statements):
            if isinstance(stmt, ast.AssumeStatement):
                # Memory intrinsics are modelled with assumes.
                if isMagic(product.name):
                    stmt.insert_after(shadowCopy(stmt))

            elif isinstance(stmt, ast.AssignStatement):
                for idx in list(accesses(stmt)):
                    stmt.insert_before(shadowAssert(shadowEquality(idx)))
                    equalities.append(idx)
                stmt.insert_after(shadowCopy(stmt))

            elif isinstance(stmt, ast.CallStatement):
                self.crossProductCall(stmt, equalities, arguments)

            elif isinstance(stmt, ast.HavocStatement):
                following = stmt.next_sibling
                if isinstance(following, ast.AssumeStatement):
                    following.insert_after(shadowCopy(following))
                stmt.insert_after(shadowCopy(stmt))

            elif isinstance(stmt, ast.GotoStatement):
                targets = len(stmt.identifiers)
                if targets < 2:
                    continue
                if targets != 2:
                    raise UnsupportedProgram("Unexpected goto statement: %s" % stmt)

                annotation = stmt.previous_sibling
                if annotation is None:
                    continue
                values = annotation.get_attribute("branchcond")
                if values is None:
                    raise UnsupportedProgram("Expected :branchcond annotation before %s" % stmt)
                if values:
                    expr = expressionOf(values[0])
                    stmt.insert_before(shadowAssert(shadowEquality(expr)))
                    equalities.append(expr)

        return equalities, arguments

    def crossProductCall(self, stmt, equalities, arguments):
        callee = stmt.procedure.name

        if isMagic(callee):
            for arg in stmt.arguments:
                if isinstance(arg.inferred_type(), ast.MapType):
                    continue
                if any(isinstance(node, ast.StorageIdentifier) for node in arg.enumerate()):
                    stmt.insert_before(shadowAssert(shadowEquality(arg)))
                    equalities.append(arg)

        if isExempt(callee):
            anchor = stmt
            for target in stmt.assignments:
                copy = ast.AssignStatement([ast.StorageIdentifier(shadow(target.name))],
                                           [target.copy()])
                anchor.insert_after(copy)
                anchor = copy
        else:
            stmt.procedure.replace_with(ast.ProcedureIdentifier(callee + PRODUCT_SUFFIX))
            for arg in list(stmt.arguments):
                arguments.append(arg)
                arg.insert_after(shadowCopy(arg))
            for target in list(stmt.assignments):
                target.insert_after(shadowCopy(target))

    def addAssertions(self, product, summary):
        annotations = annotatedSpecifications(product)

        for annotation in annotations["public_in"]:
            for original, shadowed in loads(annotation):
                product.append_children("specifications",
                                        ast.RequiresClause(equality(original, shadowed)))

        returns = [node for node in product.body.enumerate()
                   if isinstance(node, ast.ReturnStatement)]

        for ret in returns:
            for annotation in annotations["public_out"]:
                for original, shadowed in loads(annotation):
                    summary.addEqualities([original.copy()])
                    ret.insert_before(shadowAssert(equality(original, shadowed)))

            for annotation in annotations["declassified_out"]:
                for original, shadowed in loads(annotation):
                    ret.insert_before(ast.AssumeStatement(equality(original, shadowed)))

        if product.has_attribute("entrypoint") and product.body.blocks:
            product.body.blocks[0].prepend_children(
                "statements",
                ast.AssignStatement([ast.StorageIdentifier(SHADOW_OK)],
                                    [ast.BooleanLiteral(True)]))
            for ret in returns:
                ret.insert_before(ast.AssertStatement(ast.StorageIdentifier(SHADOW_OK)))

    def dependentVariables(self, program, proc_name, expr):
        """Variables ``expr`` depends on, by backward slicing over definitions.

        Globals are not followed; a variable counts only if the procedure
        defines it.
        """
        definitions = self.analysis("definition_localization").definitions_in(
            program, proc_name)

        work = [expr]
        covered = {id(expr)}
        deps = set()

        while work:
            node = work.pop(0)
            for ident in node.enumerate():
                if not isinstance(ident, ast.StorageIdentifier):
                    continue
                decl = ident.declaration
                if decl is not None and isinstance(decl.parent, ast.Program):
                    continue
                defs = definitions.get(ident.name)
                if not defs:
                    continue
                deps.add(ident.name)
                for stmt in defs:
                    if id(stmt) not in covered:
                        covered.add(id(stmt))
                        work.append(stmt)

        return deps

    def dependencies(self, program, proc_name, exprs):
        deps = set()
        for expr in exprs:
            deps |= self.dependentVariables(program, proc_name, expr)
        return deps

    def addLoopInvariants(self, program, product, summary):
        name = summary.name

        summary.equality_dependencies = self.dependencies(program, name,
                                                          summary.equalities.values())

        pointers = [arg for arg in summary.arguments if isReference(argumentType(arg))]
        summary.pointer_dependencies = (self.dependencies(program, name, pointers) -
                                        summary.equality_dependencies)

        values = [arg for arg in summary.arguments
                  if argumentType(arg) is not None and not isReference(argumentType(arg))]
        summary.value_dependencies = (self.dependencies(program, name, values) -
                                      summary.equality_dependencies -
                                      summary.pointer_dependencies)

        loops = self.analysis("loop_identification")
        liveness = self.analysis("liveness")

        blocks = {}
        for block in product.body.blocks:
            for label in block.names:
                blocks.setdefault(label, block)

        for header in loops.headers(program, name):
            block = blocks.get(header)
            if block is None:
                continue
            live = liveness.live_at(program, name, header)

            invariants = [invariant(ast.StorageIdentifier(SHADOW_OK), "shadow_invariant")]
            invariants.extend(shadowInvariant(x, "shadow_invariant")
                              for x in sorted(summary.equality_dependencies) if x in live)
            invariants.extend(shadowInvariant(x, "likely_shadow_invariant")
                              for x in sorted(summary.pointer_dependencies) if x in live)
            invariants.extend(
                ast.AssertStatement(ast.BooleanLiteral(True), attributes={
                    "unlikely_shadow_invariant": [
                        equality(ast.StorageIdentifier(x), ast.StorageIdentifier(shadow(x)))]})
                for x in sorted(summary.value_dependencies) if x in live)

            block.prepend_children("statements", *invariants)
