from __future__ import annotations

import pytest

from boogieman.application.context import CompilerContext, Options
from boogieman.application.pipeline import Pipeline
from boogieman.language.boogie import ast as B


class Builder:
    """
    Shorthands for building Boogie programs in tests:

        b.proc("p", params=[b.decl("x")], returns=[b.decl("y")],
               blocks=[b.block("L0", b.assign("y", b.var("x")))])
    """

    @staticmethod
    def var(name):
        return B.StorageIdentifier(name)

    @staticmethod
    def num(value):
        return B.IntegerLiteral(value)

    @staticmethod
    def true():
        return B.BooleanLiteral(True)

    @staticmethod
    def binop(lhs, op, rhs):
        lhs = B.StorageIdentifier(lhs) if isinstance(lhs, str) else lhs
        rhs = B.StorageIdentifier(rhs) if isinstance(rhs, str) else rhs
        return B.BinaryExpression(lhs, op, rhs)

    @staticmethod
    def type(name="int"):
        if name == "int":
            return B.IntegerType()
        elif name == "bool":
            return B.BooleanType()
        return B.CustomType(name, [])

    def decl(self, name, type="int"):
        return B.NameDeclaration([name], self.type(type))

    def local(self, name, type="int"):
        return B.VariableDeclaration([name], self.type(type))

    def globalvar(self, name, type="int"):
        return B.VariableDeclaration([name], self.type(type))

    @staticmethod
    def block(name, *statements):
        return B.Block([name] if name else [], list(statements))

    def assign(self, lhs, rhs):
        lhs = self.var(lhs) if isinstance(lhs, str) else lhs
        rhs = self.var(rhs) if isinstance(rhs, str) else rhs
        return B.AssignStatement([lhs], [rhs])

    @staticmethod
    def goto(*labels):
        return B.GotoStatement([B.LabelIdentifier(label) for label in labels])

    @staticmethod
    def ret():
        return B.ReturnStatement()

    @staticmethod
    def assume(expr, **attributes):
        return B.AssumeStatement(expr, attributes=attributes)

    def call(self, proc, args=(), assigns=()):
        return B.CallStatement(B.ProcedureIdentifier(proc),
                               [self.var(a) if isinstance(a, str) else a for a in args],
                               [self.var(a) for a in assigns])

    def requires(self, **attributes):
        return B.RequiresClause(self.true(), attributes=attributes)

    def ensures(self, **attributes):
        return B.EnsuresClause(self.true(), attributes=attributes)

    @staticmethod
    def proc(name, params=(), returns=(), specs=(), locals=(), blocks=None, attributes=None):
        body = B.Body(list(locals), list(blocks)) if blocks is not None else None
        return B.ProcedureDeclaration(name, [], list(params), list(returns), list(specs),
                                      body, attributes=attributes)

    @staticmethod
    def program(*declarations):
        return B.Program(list(declarations))

    # Inspection

    @staticmethod
    def statements(block):
        return [str(stmt) for stmt in block.statements]

    @staticmethod
    def find(program, name):
        for decl in program.declarations:
            if getattr(decl, "name", None) == name:
                return decl
        raise KeyError(name)

    @staticmethod
    def labelled(proc, label):
        for block in proc.body.blocks:
            if label in block.names:
                return block
        raise KeyError(label)


@pytest.fixture
def b() -> Builder:
    return Builder()


@pytest.fixture
def context():
    with CompilerContext(options=Options(quiet=True)) as ctx:
        yield ctx


@pytest.fixture
def shadow(context):
    """Run the shadowing stage over a program; returns (program, pass result)."""

    def _shadow(program):
        pipeline = Pipeline(context, [program])
        pipeline.request("shadowing")
        (result,) = pipeline.run()
        return result, pipeline.result("shadowing")

    return _shadow
