"""
Tests for printing Boogie nodes and for statement def/use information.
"""

import unittest

from boogieman.language.boogie import ast
from boogieman.language.boogie.boogieoutput import render
from boogieman.language.boogie.defuse import defuse


def ident(name):
    return ast.StorageIdentifier(name)


class TestExpressions(unittest.TestCase):
    def testNestedBinaryParenthesized(self):
        expr = ast.BinaryExpression(
            ident("$shadow_ok"), "&&",
            ast.BinaryExpression(ident("y"), "==", ident("y.shadow")))
        self.assertEqual(render(expr), "$shadow_ok && (y == y.shadow)")

    def testLiterals(self):
        self.assertEqual(str(ast.BooleanLiteral(False)), "false")
        self.assertEqual(str(ast.IntegerLiteral(42)), "42")
        self.assertEqual(str(ast.BitvectorLiteral(7, 32)), "7bv32")

    def testApplications(self):
        load = ast.FunctionApplication(ast.FunctionIdentifier("$load.i32"),
                                       [ident("M"), ident("p")])
        self.assertEqual(str(load), "$load.i32(M, p)")

        select = ast.MapSelect(ident("M"), [ident("i")])
        self.assertEqual(str(select), "M[i]")

        update = ast.MapUpdate(ident("M"), [ident("i")], ast.IntegerLiteral(0))
        self.assertEqual(str(update), "M[i := 0]")

    def testQuantifier(self):
        expr = ast.QuantifiedExpression(
            "forall", [], [ast.NameDeclaration(["i"], ast.IntegerType())],
            ast.BinaryExpression(ident("i"), ">=", ast.IntegerLiteral(0)))
        self.assertEqual(str(expr), "(forall i: int :: i >= 0)")

    def testOldAndIf(self):
        self.assertEqual(str(ast.OldExpression(ident("x"))), "old(x)")
        self.assertEqual(str(ast.IfExpression(ident("c"), ident("a"), ident("b"))),
                         "(if c then a else b)")
        self.assertEqual(str(ast.UnaryExpression("!", ident("c"))), "!c")


class TestStatements(unittest.TestCase):
    def testAttributes(self):
        stmt = ast.AssertStatement(
            ast.BooleanLiteral(True),
            attributes={"unlikely_shadow_invariant": [
                ast.BinaryExpression(ident("x"), "==", ident("x.shadow"))]})
        self.assertEqual(str(stmt), "assert {:unlikely_shadow_invariant x == x.shadow} true;")

        stmt = ast.AssertStatement(ident("$shadow_ok"), attributes={"shadow_invariant": []})
        self.assertEqual(str(stmt), "assert {:shadow_invariant} $shadow_ok;")

    def testCall(self):
        call = ast.CallStatement(ast.ProcedureIdentifier("f"), [ident("x")], [ident("r")])
        self.assertEqual(str(call), "call r := f(x);")

        call = ast.CallStatement(ast.ProcedureIdentifier("g"), [], [])
        self.assertEqual(str(call), "call g();")

    def testControl(self):
        goto = ast.GotoStatement([ast.LabelIdentifier("A"), ast.LabelIdentifier("B")])
        self.assertEqual(str(goto), "goto A, B;")
        self.assertEqual(str(ast.ReturnStatement()), "return;")
        self.assertEqual(str(ast.HavocStatement([ident("x"), ident("y")])), "havoc x, y;")


class TestDeclarations(unittest.TestCase):
    def testProcedure(self):
        body = ast.Body(
            [ast.VariableDeclaration(["t"], ast.IntegerType())],
            [ast.Block(["L0"], [
                ast.AssignStatement([ident("y")], [ident("x")]),
                ast.ReturnStatement()])])
        proc = ast.ProcedureDeclaration(
            "p", [], [ast.NameDeclaration(["x"], ast.IntegerType())],
            [ast.NameDeclaration(["y"], ast.IntegerType())],
            [ast.RequiresClause(ast.BinaryExpression(ident("x"), ">", ast.IntegerLiteral(0)))],
            body, attributes={"entrypoint": []})

        self.assertEqual(str(proc), "\n".join([
            "procedure {:entrypoint} p(x: int) returns (y: int)",
            "  requires x > 0;",
            "{",
            "  var t: int;",
            "",
            "L0:",
            "  y := x;",
            "  return;",
            "}",
        ]))

    def testDeclarationOnly(self):
        proc = ast.ProcedureDeclaration("f", [], [ast.NameDeclaration(["p"], ast.CustomType("ref", []))],
                                        [], [ast.ModifiesClause([ident("M")])], None)
        self.assertEqual(str(proc), "procedure f(p: ref);\n  modifies M;")

    def testProgram(self):
        program = ast.Program([
            ast.TypeDeclaration("ref", []),
            ast.ConstantDeclaration(["K"], ast.IntegerType(), unique=True),
            ast.VariableDeclaration(["M"], ast.MapType([], [ast.CustomType("ref", [])],
                                                       ast.IntegerType())),
            ast.FunctionDeclaration("f", [], [ast.NameDeclaration([], ast.IntegerType())],
                                    ast.NameDeclaration([], ast.BooleanType())),
            ast.AxiomDeclaration(ast.BinaryExpression(ident("K"), ">", ast.IntegerLiteral(0))),
        ])
        self.assertEqual(str(program), "\n".join([
            "type ref;",
            "const unique K: int;",
            "var M: [ref]int;",
            "function f(int) returns (bool);",
            "axiom K > 0;",
        ]))


class TestDefUse(unittest.TestCase):
    def testAssign(self):
        stmt = ast.AssignStatement(
            [ast.MapSelect(ident("M"), [ident("i")])],
            [ast.BinaryExpression(ident("x"), "+", ident("y"))])
        defs, uses = defuse(stmt)
        self.assertEqual(defs, {"M"})
        self.assertEqual(uses, {"M", "i", "x", "y"})

    def testCallAndHavoc(self):
        call = ast.CallStatement(ast.ProcedureIdentifier("f"), [ident("a")], [ident("r")])
        self.assertEqual(defuse(call), (frozenset(["r"]), frozenset(["a"])))

        havoc = ast.HavocStatement([ident("h")])
        self.assertEqual(defuse(havoc), (frozenset(["h"]), frozenset()))

    def testBoundVariablesIgnored(self):
        expr = ast.QuantifiedExpression(
            "forall", [], [ast.NameDeclaration(["i"], ast.IntegerType())],
            ast.BinaryExpression(ast.MapSelect(ident("M"), [ident("i")]), "==", ident("k")))
        defs, uses = defuse(ast.AssumeStatement(expr))
        self.assertEqual(uses, {"M", "k"})

    def testControlIsEmpty(self):
        self.assertEqual(defuse(ast.ReturnStatement()), (frozenset(), frozenset()))


if __name__ == "__main__":
    unittest.main()
