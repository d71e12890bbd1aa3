"""Liveness analysis.

Backward iterative data flow over the block graph of each procedure:

    live_out(B) = union of live_in(S) for each successor S
    live_in(B)  = transfer of live_out(B) through B's statements, last first

where a statement maps ``live`` to ``(live - defs) | uses``. Nothing is live
after a ``return``. Results are kept per program, then keyed by procedure
name and block key:

    live[program][procedure_name][label] = frozenset of variable names
"""

import collections

from boogieman.application.passmanager import AnalysisPass, NO_EFFECT
from boogieman.language.boogie import ast
from boogieman.language.boogie.defuse import defuse

from . import cfg


def transfer(block, live):
    for stmt in reversed(block.statements):
        defs, uses = defuse(stmt)
        live = (live - defs) | uses
    return live


def liveIn(graph):
    live = {node: frozenset() for node in graph}
    work = collections.deque(reversed(list(graph)))
    queued = set(work)

    while work:
        node = work.popleft()
        queued.discard(node)

        out = frozenset()
        for succ in graph.successors(node):
            out |= live[succ]

        result = transfer(graph.nodes[node]["block"], out)
        if result != live[node]:
            live[node] = result
            for pred in graph.predecessors(node):
                if pred not in queued:
                    queued.add(pred)
                    work.append(pred)

    return live


class Liveness(AnalysisPass):
    name = "liveness"
    description = "Compute the variables live at the entry of each block."

    def __init__(self, context, results=None):
        AnalysisPass.__init__(self, context, results)
        self.live = {}

    def live_at(self, program, proc_name, label):
        return self.live.get(program, {}).get(proc_name, {}).get(label, frozenset())

    def run(self, program):
        table = self.live[program] = {}
        for decl in program.declarations:
            if not isinstance(decl, ast.ProcedureDeclaration) or decl.body is None:
                continue
            graph, _ = cfg.blockGraph(decl.body)
            table[decl.name] = liveIn(graph)
        return NO_EFFECT
