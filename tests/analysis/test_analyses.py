"""
Tests for the supporting analyses: resolution, loops, definitions, liveness.
"""

from __future__ import annotations

import pytest

from boogieman.analysis import cfg
from boogieman.analysis.definitions import DefinitionLocalization
from boogieman.analysis.liveness import Liveness
from boogieman.analysis.loops import LoopIdentification
from boogieman.analysis.resolution import BINDER, Resolution
from boogieman.language.asttools.metaast import ASTNode
from boogieman.language.boogie import ast as B


@pytest.fixture
def counter(b):
    """
    procedure count(n: int) returns (s: int)
    {
      var i: int;
    L0: i := 0; s := 0; goto L1;
    L1: goto L2, L3;
    L2: s := s + i; i := i + 1; goto L1;
    L3: return;
    }
    """
    proc = b.proc(
        "count", params=[b.decl("n")], returns=[b.decl("s")], locals=[b.local("i")],
        blocks=[
            b.block("L0", b.assign("i", b.num(0)), b.assign("s", b.num(0)), b.goto("L1")),
            b.block("L1", b.goto("L2", "L3")),
            b.block("L2", b.assign("s", b.binop("s", "+", "i")),
                    b.assign("i", b.binop("i", "+", b.num(1))), b.goto("L1")),
            b.block("L3", b.ret()),
        ])
    return b.program(b.globalvar("g"), proc)


def test_block_graph(counter, b):
    graph, entry = cfg.blockGraph(b.find(counter, "count").body)
    assert entry == "L0"
    assert set(graph.edges()) == {("L0", "L1"), ("L1", "L2"), ("L1", "L3"), ("L2", "L1")}


def test_fall_through(b):
    body = B.Body([], [b.block("A", b.assign("x", "y")), b.block(None, b.ret())])
    graph, entry = cfg.blockGraph(body)
    assert set(graph.edges()) == {("A", "#1")}


def test_loops(counter, context):
    loops = LoopIdentification(context)
    loops.run(counter)
    assert loops.loops_in(counter, "count") == {"L1": {"L1", "L2"}}
    assert loops.headers(counter, "count") == ["L1"]


def test_no_loops(context, b):
    program = b.program(b.proc("p", blocks=[b.block("L0", b.ret())]))
    loops = LoopIdentification(context)
    loops.run(program)
    assert loops.loops_in(program, "p") == {}


def test_definitions(counter, context):
    defs = DefinitionLocalization(context)
    defs.run(counter)
    table = defs.definitions_in(counter, "count")

    assert [str(stmt) for stmt in table["i"]] == ["i := 0;", "i := i + 1;"]
    assert [str(stmt) for stmt in table["s"]] == ["s := 0;", "s := s + i;"]
    assert "n" not in table


def test_liveness(counter, context):
    liveness = Liveness(context)
    liveness.run(counter)

    assert liveness.live_at(counter, "count", "L0") == frozenset()
    assert liveness.live_at(counter, "count", "L1") == {"i", "s"}
    assert liveness.live_at(counter, "count", "L2") == {"i", "s"}
    assert liveness.live_at(counter, "count", "L3") == frozenset()


def test_resolution(counter, context, b):
    resolution = Resolution(context)
    resolution.run(counter)

    proc = b.find(counter, "count")
    idents = [node for node in proc.enumerate() if isinstance(node, B.StorageIdentifier)]
    assert idents
    for ident in idents:
        assert ident.name in ident.declaration.names
    assert resolution.unbound == []

    goto = b.labelled(proc, "L1").statements[0]
    assert [label.declaration for label in goto.identifiers] == [
        b.labelled(proc, "L2"), b.labelled(proc, "L3")]


def test_resolution_scopes(context, b):
    bound = B.NameDeclaration(["x"], B.IntegerType())
    quantified = B.QuantifiedExpression("forall", [], [bound],
                                        b.binop("x", "==", "x"))
    proc = b.proc("p", params=[b.decl("x")],
                  blocks=[b.block("L0", B.AssertStatement(b.binop(quantified, "&&", "x")))])
    glob = b.globalvar("x")
    program = b.program(glob, proc)

    Resolution(context).run(program)

    inner = [n for n in quantified.enumerate() if isinstance(n, B.StorageIdentifier)]
    assert all(ident.declaration is bound for ident in inner)
    outer = proc.body.blocks[0].statements[0].expression.rhs
    assert outer.declaration is proc.parameters[0]


def test_resolution_calls_and_attributes(context, b):
    callee = b.proc("f", params=[b.decl("a")])
    cond = b.var("c")
    caller = b.proc("g", locals=[b.local("c", "bool")], blocks=[
        b.block("L0", b.assume(b.true(), branchcond=[cond]), b.call("f", ["c"]), b.ret())])
    program = b.program(callee, caller)

    Resolution(context).run(program)

    call = caller.body.blocks[0].statements[1]
    assert call.procedure.declaration is callee
    assert cond.declaration is caller.body.locals[0]


def test_binder_binds_inserted_nodes(context, b):
    proc = b.proc("p", locals=[b.local("x")], blocks=[b.block("L0", b.ret())])
    program = b.program(proc)
    Resolution(context).run(program)
    assert any(o is BINDER for o in ASTNode.observers)

    stmt = b.assign("x", b.num(1))
    proc.body.blocks[0].prepend_children("statements", stmt)

    assert stmt.lhs[0].declaration is proc.body.locals[0]


def test_binder_ignores_detached_trees(context, b):
    program = b.program(b.globalvar("x"))
    Resolution(context).run(program)

    stmt = b.assign("x", b.num(1))
    assert stmt.lhs[0].declaration is None


def test_results_are_kept_per_program(counter, context, b):
    flat = b.program(b.proc("count", returns=[b.decl("s")],
                            blocks=[b.block("L1", b.assign("s", b.num(1)), b.ret())]))
    loops, defs, liveness = (LoopIdentification(context), DefinitionLocalization(context),
                             Liveness(context))
    for analysis in (loops, defs, liveness):
        analysis.run(counter)
        analysis.run(flat)

    assert loops.headers(counter, "count") == ["L1"]
    assert loops.headers(flat, "count") == []
    assert [str(s) for s in defs.definitions_in(counter, "count")["s"]] == [
        "s := 0;", "s := s + i;"]
    assert [str(s) for s in defs.definitions_in(flat, "count")["s"]] == ["s := 1;"]
    assert liveness.live_at(counter, "count", "L1") == {"i", "s"}
    assert liveness.live_at(flat, "count", "L1") == frozenset()
