"""Boogie AST node classes.

One class per construct of the verification-condition language, built on
the generic node framework of ``boogieman.language.asttools.metaast``.
Every node prints back to Boogie source text with ``str(node)``.

Class hierarchy:
- Program: root; ordered top-level declarations
- Declaration: TypeDeclaration, ConstantDeclaration, VariableDeclaration,
  NameDeclaration, FunctionDeclaration, AxiomDeclaration,
  ProcedureDeclaration, ImplementationDeclaration
- Specification: RequiresClause, EnsuresClause, ModifiesClause
- Body and Block
- Statement: assert, assume, havoc, assignment, call, goto, return
- Expression: literals, identifiers, applications, map accesses,
  operators, old, if-then-else, quantifiers
- Type: bool, int, real, bitvectors, custom and map types
"""

from boogieman.language.asttools.metaast import ASTNode


class BoogieNode(ASTNode):
    """Root class of the Boogie nodes; adds the print contract."""

    def __str__(self):
        from boogieman.language.boogie.boogieoutput import render
        return render(self)


class Program(BoogieNode):
    """A whole Boogie program.

    Attributes:
        source_file: Path of the file the program was read from, if any.
    """
    __fields__ = "declarations*",
    __references__ = "source_file",

    @property
    def global_variables(self):
        return [d for d in self.declarations if isinstance(d, VariableDeclaration)]

    @property
    def procedures(self):
        return [d for d in self.declarations if isinstance(d, ProcedureDeclaration)]


# Types

class Type(BoogieNode):
    pass


class BooleanType(Type):
    pass


class IntegerType(Type):
    pass


class RealType(Type):
    pass


class BitvectorType(Type):
    __fields__ = "width",


class CustomType(Type):
    __fields__ = "name", "arguments*"


class MapType(Type):
    __fields__ = "type_arguments*", "domain*", "range"


# Declarations

class Declaration(BoogieNode):
    pass


class TypeDeclaration(Declaration):
    __fields__ = "name", "arguments*", "finite?", "type?"


class NameDeclaration(Declaration):
    """Typed names: parameters, returns, bound and function arguments.

    Function arguments may be anonymous, in which case ``names`` is empty.
    """
    __fields__ = "names*", "type", "where?"


class VariableDeclaration(NameDeclaration):
    pass


class ConstantDeclaration(NameDeclaration):
    __fields__ = "unique?",


class FunctionDeclaration(Declaration):
    __fields__ = "name", "type_arguments*", "arguments*", "result", "body?"


class AxiomDeclaration(Declaration):
    __fields__ = "expression",


class ProcedureDeclaration(Declaration):
    __fields__ = ("name", "type_arguments*", "parameters*", "returns*",
                  "specifications*", "body?")


class ImplementationDeclaration(ProcedureDeclaration):
    pass


# Specifications

class Specification(BoogieNode):
    pass


class RequiresClause(Specification):
    __fields__ = "expression", "free?"


class EnsuresClause(Specification):
    __fields__ = "expression", "free?"


class ModifiesClause(Specification):
    __fields__ = "identifiers*", "free?"


# Bodies

class Body(BoogieNode):
    __fields__ = "locals*", "blocks*"


class Block(BoogieNode):
    """A basic block; ``names`` holds its labels (possibly none)."""
    __fields__ = "names*", "statements*"

    @property
    def name(self):
        return self.names[0] if self.names else None


# Statements

class Statement(BoogieNode):
    pass


class AssertStatement(Statement):
    __fields__ = "expression",


class AssumeStatement(Statement):
    __fields__ = "expression",


class HavocStatement(Statement):
    __fields__ = "identifiers*",


class AssignStatement(Statement):
    __fields__ = "lhs*", "rhs*"


class CallStatement(Statement):
    __fields__ = "procedure", "arguments*", "assignments*"


class GotoStatement(Statement):
    __fields__ = "identifiers*",


class ReturnStatement(Statement):
    pass


# Expressions

RELATIONAL_OPERATORS = frozenset(["==", "!=", "<", "<=", ">", ">=", "<:"])
LOGICAL_OPERATORS = frozenset(["<==>", "==>", "<==", "&&", "||"])


class Expression(BoogieNode):
    def inferred_type(self):
        """The type of the expression when it can be read off the tree.

        Identifier types come from their resolved declarations, so most
        answers need the resolution pass to have run. Returns None when
        the type is not known.
        """
        return None


class BooleanLiteral(Expression):
    __fields__ = "value",

    def inferred_type(self):
        return BooleanType()


class IntegerLiteral(Expression):
    __fields__ = "value",

    def inferred_type(self):
        return IntegerType()


class BitvectorLiteral(Expression):
    __fields__ = "value", "width"

    def inferred_type(self):
        return BitvectorType(self.width)


class Identifier(Expression):
    """A name; ``declaration`` is the non-owning binding set by resolution."""
    __fields__ = "name",
    __references__ = "declaration",

    def inferred_type(self):
        if isinstance(self.declaration, NameDeclaration):
            return self.declaration.type
        return None


class StorageIdentifier(Identifier):
    pass


class FunctionIdentifier(Identifier):
    pass


class ProcedureIdentifier(Identifier):
    pass


class LabelIdentifier(Identifier):
    pass


class FunctionApplication(Expression):
    __fields__ = "function", "arguments*"

    def inferred_type(self):
        decl = getattr(self.function, "declaration", None)
        if isinstance(decl, FunctionDeclaration):
            return decl.result.type
        return None


class MapSelect(Expression):
    __fields__ = "map", "indexes*"

    def inferred_type(self):
        map_type = self.map.inferred_type()
        if isinstance(map_type, MapType):
            return map_type.range
        return None


class MapUpdate(Expression):
    __fields__ = "map", "indexes*", "value"

    def inferred_type(self):
        return self.map.inferred_type()


class UnaryExpression(Expression):
    __fields__ = "op", "expression"

    def inferred_type(self):
        if self.op == "!":
            return BooleanType()
        return self.expression.inferred_type()


class BinaryExpression(Expression):
    __fields__ = "lhs", "op", "rhs"

    def inferred_type(self):
        if self.op in RELATIONAL_OPERATORS or self.op in LOGICAL_OPERATORS:
            return BooleanType()
        return self.lhs.inferred_type()


class OldExpression(Expression):
    __fields__ = "expression",

    def inferred_type(self):
        return self.expression.inferred_type()


class IfExpression(Expression):
    __fields__ = "condition", "then", "otherwise"

    def inferred_type(self):
        return self.then.inferred_type()


class QuantifiedExpression(Expression):
    __fields__ = "quantifier", "type_arguments*", "variables*", "expression"

    def inferred_type(self):
        if self.quantifier == "lambda":
            return None
        return BooleanType()

