"""Definition localization: where is each variable written?

    definitions[program][procedure_name][variable_name] = [statements]

Statements are listed in program order. Assignment targets, call
assignments and havoc targets count as definitions.
"""

from boogieman.application.passmanager import AnalysisPass, NO_EFFECT
from boogieman.language.boogie import ast
from boogieman.language.boogie.defuse import defuse


class DefinitionLocalization(AnalysisPass):
    name = "definition_localization"
    description = "Map each variable to the statements defining it."

    def __init__(self, context, results=None):
        AnalysisPass.__init__(self, context, results)
        self.definitions = {}

    def definitions_in(self, program, proc_name):
        return self.definitions.get(program, {}).get(proc_name, {})

    def run(self, program):
        tables = self.definitions[program] = {}
        for decl in program.declarations:
            if not isinstance(decl, ast.ProcedureDeclaration) or decl.body is None:
                continue

            table = tables.setdefault(decl.name, {})
            for block in decl.body.blocks:
                for stmt in block.statements:
                    defs, _ = defuse(stmt)
                    for name in sorted(defs):
                        table.setdefault(name, []).append(stmt)
        return NO_EFFECT
