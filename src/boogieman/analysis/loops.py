"""Loop identification.

Finds the natural loops of every procedure body. Results are kept per
program, then keyed by procedure name and block label so that they also
describe copies of the analysed procedures:

    loops[program][procedure_name][header_label] = {labels of the loop body}
"""

from boogieman.application.passmanager import AnalysisPass, NO_EFFECT
from boogieman.language.boogie import ast

from . import cfg


class LoopIdentification(AnalysisPass):
    name = "loop_identification"
    description = "Identify loop headers and loop bodies."

    def __init__(self, context, results=None):
        AnalysisPass.__init__(self, context, results)
        self.loops = {}

    def loops_in(self, program, proc_name):
        return self.loops.get(program, {}).get(proc_name, {})

    def headers(self, program, proc_name):
        return sorted(self.loops_in(program, proc_name))

    def run(self, program):
        table = self.loops[program] = {}
        for decl in program.declarations:
            if not isinstance(decl, ast.ProcedureDeclaration) or decl.body is None:
                continue
            graph, entry = cfg.blockGraph(decl.body)
            table[decl.name] = cfg.naturalLoops(graph, entry)
        return NO_EFFECT
