"""Pipeline driver for boogieman.

The Pipeline owns the live programs of a run and hands stage requests to
the PassManager. Once the queue is drained, the programs are rendered back
to Boogie text, either to the configured output file or to temporary files
for the verifier, which receives them as finished artifacts.
"""

from .errors import ConfigurationError
from .passmanager import PassManager
from .passes import standard_registry

SEPARATOR = "---\n"


class Pipeline(object):
    """Run requested stages over a set of programs.

    Attributes:
        context: CompilerContext of the run
        registry: PassRegistry the stages are looked up in
        manager: PassManager holding the schedule and caches
    """

    def __init__(self, context, programs, registry=None):
        """
        Args:
            context: CompilerContext of the run
            programs: Initial programs (usually one parsed program)
            registry: PassRegistry; the standard passes if None
        """
        self.context = context
        self.registry = registry if registry is not None else standard_registry()
        self.manager = PassManager(context, self.registry, programs)

    @property
    def programs(self):
        return self.manager.programs

    def request(self, *stages):
        """Queue stages to run in the order given, ahead of pending ones."""
        for stage in reversed(stages):
            self.manager.request(stage)

    def run(self):
        """Run every queued stage; returns the live programs."""
        return self.manager.run()

    def result(self, name):
        return self.manager.result(name)

    def render(self):
        return SEPARATOR.join("%s\n" % program for program in self.programs)

    def write(self, path=None):
        """Write the rendered programs to ``path`` or the configured output file."""
        path = path or self.context.options.output_file
        if path is None:
            raise ConfigurationError("No output file configured")
        with open(path, "w") as f:
            f.write(self.render())
        return path

    def export(self, suffix=".bpl"):
        """Write each program to its own temporary file owned by the context.

        Returns:
            list: Paths of the files, one per live program.
        """
        return [self.context.temporary_file(suffix, text="%s\n" % program)
                for program in self.programs]
