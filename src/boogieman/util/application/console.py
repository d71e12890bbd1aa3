"""
Console output and timing for pipeline stages.

Every stage the scheduler runs is wrapped in a console scope. Scopes nest,
so the begin/end lines show the path from the root, and the end line
carries the elapsed time (and, in verbose mode, the resident memory of the
process).
"""

import sys
import time

import psutil


def elapsedTime(t):
    """Format a duration in seconds, e.g. "12.5 ms" or "3.2 s"."""
    if t < 1.0:
        return "%5.4g ms" % (t * 1000.0)
    elif t < 60.0:
        return "%5.4g s" % (t)
    elif t < 3600.0:
        return "%5.4g m" % (t / 60.0)
    else:
        return "%5.4g h" % (t / 3600.0)


def memorySize(sz):
    """Format a size in bytes, e.g. "512 B" or "1.5 MB"."""
    fsz = float(sz)
    if sz < 1024:
        return "%5g B" % fsz
    elif sz < 1024**2:
        return "%5.4g KB" % (fsz / 1024)
    elif sz < 1024**3:
        return "%5.4g MB" % (fsz / 1024**2)
    else:
        return "%5.4g GB" % (fsz / 1024**3)


class Scope(object):
    """A node of the scope tree, timing one named phase.

    Attributes:
        parent: Enclosing scope, or None for the root.
        name: Phase name.
        children: Nested scopes opened while this one was current.
    """

    def __init__(self, parent, name):
        self.parent = parent
        self.name = name
        self.children = []
        self._start = None
        self._end = None

    def begin(self):
        self._start = time.perf_counter()

    def end(self):
        self._end = time.perf_counter()

    @property
    def elapsed(self):
        return self._end - self._start

    def path(self):
        if self.parent is None:
            return ()
        else:
            return self.parent.path() + (self.name,)

    def child(self, name):
        scope = Scope(self, name)
        self.children.append(scope)
        return scope


class ConsoleScopeManager(object):
    """Context manager returned by Console.scope()."""

    __slots__ = "console", "name"

    def __init__(self, console, name):
        self.console = console
        self.name = name

    def __enter__(self):
        return self.console.begin(self.name)

    def __exit__(self, type, value, tb):
        self.console.end()


class Console(object):
    """Hierarchical console output with timing.

    Attributes:
        out: Output stream (default: sys.stdout).
        root: Root scope of the hierarchy.
        current: Currently active scope.
        verbose: Report memory usage and verbose_output() messages.
        quiet: Suppress all output.
    """

    def __init__(self, out=None, verbose=False, quiet=False):
        if out is None:
            out = sys.stdout
        self.out = out

        self.root = Scope(None, "root")
        self.current = self.root

        self.verbose = verbose
        self.quiet = quiet

    def path(self):
        return "[ %s ]" % " | ".join(self.current.path())

    def begin(self, name):
        scope = self.current.child(name)
        scope.begin()
        self.current = scope

        self.output("begin %s" % self.path(), 0)
        return scope

    def end(self):
        scope = self.current
        scope.end()

        line = "end   %s %s" % (self.path(), elapsedTime(scope.elapsed))
        if self.verbose:
            line += " %s" % memorySize(psutil.Process().memory_info().rss)
        self.output(line, 0)

        self.current = scope.parent
        return scope

    def scope(self, name):
        """Time a phase with a 'with' statement.

        Example:
            with console.scope("liveness"):
                ...
        """
        return ConsoleScopeManager(self, name)

    def output(self, s, tabs=1):
        if self.quiet:
            return

        if tabs:
            self.out.write("\t" * tabs)

        self.out.write(s)
        self.out.write("\n")

    def verbose_output(self, s, tabs=1):
        if self.verbose:
            self.output(s, tabs)
