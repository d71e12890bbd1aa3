"""Boogie source output.

BoogieOutput renders a node, and everything below it, back to Boogie source
text. Nested binary operands are always parenthesised, which keeps the
output unambiguous without tracking operator precedence:

    $shadow_ok := $shadow_ok && (y == y.shadow);

Top-level declarations are separated by newlines, statements inside blocks
are indented by two spaces, and labels sit on their own lines.
"""

from boogieman.util.typedispatch import TypeDispatcher, dispatch, defaultdispatch
from boogieman.language.boogie import ast

INDENT = "  "


def spaced(*parts):
    """Join the non-empty parts with single spaces."""
    return " ".join(part for part in parts if part)


class BoogieOutput(TypeDispatcher):
    """Render Boogie nodes to source text."""

    def attributes(self, node):
        rendered = []
        for name, values in node.attributes.items():
            args = ", ".join(self.attributeValue(value) for value in values)
            rendered.append("{:%s%s}" % (name, " " + args if args else ""))
        return " ".join(rendered)

    def attributeValue(self, value):
        if isinstance(value, str):
            return '"%s"' % value
        elif isinstance(value, bool):
            return "true" if value else "false"
        elif isinstance(value, int):
            return str(value)
        return self(value)

    def operand(self, node):
        text = self(node)
        if isinstance(node, ast.BinaryExpression):
            return "(%s)" % text
        return text

    def commaSeparated(self, nodes):
        return ", ".join(self(node) for node in nodes)

    @defaultdispatch
    def visitDefault(self, node):
        raise TypeError("Cannot render %r" % type(node).__name__)

    @dispatch(ast.Program)
    def visitProgram(self, node):
        return "\n".join(self(decl) for decl in node.declarations)

    # Types

    @dispatch(ast.BooleanType)
    def visitBooleanType(self, node):
        return "bool"

    @dispatch(ast.IntegerType)
    def visitIntegerType(self, node):
        return "int"

    @dispatch(ast.RealType)
    def visitRealType(self, node):
        return "real"

    @dispatch(ast.BitvectorType)
    def visitBitvectorType(self, node):
        return "bv%d" % node.width

    @dispatch(ast.CustomType)
    def visitCustomType(self, node):
        return spaced(node.name, *[self.operandType(arg) for arg in node.arguments])

    def operandType(self, node):
        text = self(node)
        if isinstance(node, ast.CustomType) and node.arguments:
            return "(%s)" % text
        return text

    @dispatch(ast.MapType)
    def visitMapType(self, node):
        targs = "<%s>" % ", ".join(node.type_arguments) if node.type_arguments else ""
        return "%s[%s]%s" % (targs, self.commaSeparated(node.domain), self(node.range))

    # Declarations

    @dispatch(ast.TypeDeclaration)
    def visitTypeDeclaration(self, node):
        synonym = "= %s" % self(node.type) if node.type is not None else ""
        return spaced("type", self.attributes(node), "finite" if node.finite else "",
                      node.name, *list(node.arguments) + [synonym]) + ";"

    def typedNames(self, node):
        names = ", ".join(node.names)
        where = "where %s" % self(node.where) if node.where is not None else ""
        if names:
            return spaced(self.attributes(node), "%s: %s" % (names, self(node.type)), where)
        return spaced(self.attributes(node), self(node.type), where)

    @dispatch(ast.NameDeclaration)
    def visitNameDeclaration(self, node):
        return self.typedNames(node)

    @dispatch(ast.VariableDeclaration)
    def visitVariableDeclaration(self, node):
        return "var %s;" % self.typedNames(node)

    @dispatch(ast.ConstantDeclaration)
    def visitConstantDeclaration(self, node):
        names = "%s: %s" % (", ".join(node.names), self(node.type))
        return spaced("const", self.attributes(node),
                      "unique" if node.unique else "", names) + ";"

    @dispatch(ast.FunctionDeclaration)
    def visitFunctionDeclaration(self, node):
        targs = "<%s>" % ", ".join(node.type_arguments) if node.type_arguments else ""
        signature = "%s%s(%s) returns (%s)" % (
            node.name, targs, self.commaSeparated(node.arguments), self(node.result))
        text = spaced("function", self.attributes(node), signature)
        if node.body is not None:
            return "%s { %s }" % (text, self(node.body))
        return text + ";"

    @dispatch(ast.AxiomDeclaration)
    def visitAxiomDeclaration(self, node):
        return spaced("axiom", self.attributes(node), self(node.expression)) + ";"

    def signature(self, node):
        targs = "<%s>" % ", ".join(node.type_arguments) if node.type_arguments else ""
        rets = ("returns (%s)" % self.commaSeparated(node.returns)
                if node.returns else "")
        return spaced(self.attributes(node),
                      "%s%s(%s)" % (node.name, targs, self.commaSeparated(node.parameters)),
                      rets)

    @dispatch(ast.ProcedureDeclaration)
    def visitProcedureDeclaration(self, node):
        lines = ["procedure %s%s" % (self.signature(node), "" if node.body else ";")]
        lines.extend(INDENT + self(spec) for spec in node.specifications)
        if node.body is not None:
            lines.append(self(node.body))
        return "\n".join(lines)

    @dispatch(ast.ImplementationDeclaration)
    def visitImplementationDeclaration(self, node):
        return "implementation %s\n%s" % (self.signature(node), self(node.body))

    # Specifications

    @dispatch(ast.RequiresClause)
    def visitRequiresClause(self, node):
        return spaced("free" if node.free else "", "requires", self.attributes(node),
                      self(node.expression)) + ";"

    @dispatch(ast.EnsuresClause)
    def visitEnsuresClause(self, node):
        return spaced("free" if node.free else "", "ensures", self.attributes(node),
                      self(node.expression)) + ";"

    @dispatch(ast.ModifiesClause)
    def visitModifiesClause(self, node):
        return spaced("free" if node.free else "", "modifies", self.attributes(node),
                      self.commaSeparated(node.identifiers)) + ";"

    # Bodies

    @dispatch(ast.Body)
    def visitBody(self, node):
        lines = ["{"]
        lines.extend(INDENT + self(decl) for decl in node.locals)
        if node.locals and node.blocks:
            lines.append("")
        lines.extend(self(block) for block in node.blocks)
        lines.append("}")
        return "\n".join(lines)

    @dispatch(ast.Block)
    def visitBlock(self, node):
        lines = ["%s:" % name for name in node.names]
        lines.extend(INDENT + self(stmt) for stmt in node.statements)
        return "\n".join(lines)

    # Statements

    @dispatch(ast.AssertStatement)
    def visitAssertStatement(self, node):
        return spaced("assert", self.attributes(node), self(node.expression)) + ";"

    @dispatch(ast.AssumeStatement)
    def visitAssumeStatement(self, node):
        return spaced("assume", self.attributes(node), self(node.expression)) + ";"

    @dispatch(ast.HavocStatement)
    def visitHavocStatement(self, node):
        return "havoc %s;" % self.commaSeparated(node.identifiers)

    @dispatch(ast.AssignStatement)
    def visitAssignStatement(self, node):
        return "%s := %s;" % (self.commaSeparated(node.lhs), self.commaSeparated(node.rhs))

    @dispatch(ast.CallStatement)
    def visitCallStatement(self, node):
        assigns = ("%s :=" % self.commaSeparated(node.assignments)
                   if node.assignments else "")
        call = "%s(%s)" % (self(node.procedure), self.commaSeparated(node.arguments))
        return spaced("call", self.attributes(node), assigns, call) + ";"

    @dispatch(ast.GotoStatement)
    def visitGotoStatement(self, node):
        return "goto %s;" % self.commaSeparated(node.identifiers)

    @dispatch(ast.ReturnStatement)
    def visitReturnStatement(self, node):
        return "return;"

    # Expressions

    @dispatch(ast.BooleanLiteral)
    def visitBooleanLiteral(self, node):
        return "true" if node.value else "false"

    @dispatch(ast.IntegerLiteral)
    def visitIntegerLiteral(self, node):
        return str(node.value)

    @dispatch(ast.BitvectorLiteral)
    def visitBitvectorLiteral(self, node):
        return "%dbv%d" % (node.value, node.width)

    @dispatch(ast.Identifier)
    def visitIdentifier(self, node):
        return node.name

    @dispatch(ast.FunctionApplication)
    def visitFunctionApplication(self, node):
        return "%s(%s)" % (self(node.function), self.commaSeparated(node.arguments))

    @dispatch(ast.MapSelect)
    def visitMapSelect(self, node):
        return "%s[%s]" % (self.operand(node.map), self.commaSeparated(node.indexes))

    @dispatch(ast.MapUpdate)
    def visitMapUpdate(self, node):
        return "%s[%s := %s]" % (self.operand(node.map), self.commaSeparated(node.indexes),
                                 self(node.value))

    @dispatch(ast.UnaryExpression)
    def visitUnaryExpression(self, node):
        return "%s%s" % (node.op, self.operand(node.expression))

    @dispatch(ast.BinaryExpression)
    def visitBinaryExpression(self, node):
        return "%s %s %s" % (self.operand(node.lhs), node.op, self.operand(node.rhs))

    @dispatch(ast.OldExpression)
    def visitOldExpression(self, node):
        return "old(%s)" % self(node.expression)

    @dispatch(ast.IfExpression)
    def visitIfExpression(self, node):
        return "(if %s then %s else %s)" % (self(node.condition), self(node.then),
                                           self(node.otherwise))

    @dispatch(ast.QuantifiedExpression)
    def visitQuantifiedExpression(self, node):
        targs = "<%s> " % ", ".join(node.type_arguments) if node.type_arguments else ""
        return "(%s %s%s :: %s)" % (node.quantifier, targs,
                                    self.commaSeparated(node.variables),
                                    self(node.expression))


_output = BoogieOutput()


def render(node):
    """Render ``node`` as Boogie source text."""
    return _output(node)
