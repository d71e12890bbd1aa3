"""
Pass Manager system for boogieman.

This module provides the pass abstractions and the scheduler that drives
them:

- Pass registration through an explicit registry (stage name -> pass class)
- Dependency resolution by dependency injection into a work queue
- Caching of analysis and transformation results
- Invalidation of every cached analysis when a destructive pass changes
  the program
- Passes that fork the program set or schedule further stages

**Key Concepts:**

1. **Pass Types:**
   - AnalysisPass: non-destructive; its result object is cached until a
     destructive pass changes the program
   - TransformationPass: destructive; once applied it is cached for the
     rest of the run

2. **Effects:**
   `Pass.run(program)` returns exactly one of `NoEffect`, `Changed`,
   `Replace` (a new program list replacing the live programs) or
   `Schedule` (stage names to run next).

3. **Scheduling:**
   `request()` pushes a stage on the front of the queue. `step()` pops the
   head; a stage with missing dependencies is queued again behind them,
   destructive dependencies first so that analyses are not computed only
   to be invalidated straight away.

**Usage:**
```python
registry = PassRegistry()
register_standard_passes(registry)

manager = PassManager(context, registry, [program])
manager.request("shadowing")
programs = manager.run()
```
"""

import collections
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx

from .errors import ConfigurationError, InternalError

LOG = logging.getLogger(__name__)


class PassKind(Enum):
    """Types of passes in the system."""
    ANALYSIS = "analysis"
    TRANSFORMATION = "transformation"


class Effect(object):
    """Base class of the outcomes a pass run can have."""
    __slots__ = ()


@dataclass(frozen=True)
class NoEffect(Effect):
    """The run neither changed the program nor asks for anything."""


@dataclass(frozen=True)
class Changed(Effect):
    """Whether the run changed the program."""
    changed: bool = True


@dataclass(frozen=True)
class Replace(Effect):
    """The live program set is replaced by ``programs``."""
    programs: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, "programs", tuple(self.programs))


@dataclass(frozen=True)
class Schedule(Effect):
    """``stages`` run next, in order, ahead of everything already queued."""
    stages: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "stages", tuple(self.stages))


NO_EFFECT = NoEffect()


class Pass(ABC):
    """Base class for all passes.

    Subclasses set the class attributes below and implement ``run``. The
    scheduler constructs a pass with the context and the cached results of
    the dependencies it declared, then calls ``run`` once per live program.

    Class attributes:
        name: Stage name the pass is registered under
        depends: Names of the passes whose results or effects it needs
        destructive: Whether running it may invalidate cached analyses
        description: One-line summary
    """
    name: Optional[str] = None
    depends: Tuple[str, ...] = ()
    destructive: bool = False
    description: str = ""

    def __init__(self, context, results=None):
        """
        Args:
            context: The CompilerContext of the run
            results: Cached pass instances, keyed by dependency name
        """
        self.context = context
        self.results: Dict[str, "Pass"] = dict(results or {})

    @classmethod
    def kind(cls) -> PassKind:
        return PassKind.TRANSFORMATION if cls.destructive else PassKind.ANALYSIS

    def analysis(self, name: str) -> "Pass":
        """Return the completed pass ``name`` this pass depends on."""
        try:
            return self.results[name]
        except KeyError:
            raise ConfigurationError("Pass '%s' has no cached result for '%s'"
                                     % (self.name, name)) from None

    def warn(self, message, *args):
        if self.context.options.warnings:
            LOG.warning("%s: " + message, self.name, *args)

    @abstractmethod
    def run(self, program) -> Effect:
        """Run the pass on one program.

        Returns:
            One of NoEffect, Changed, Replace or Schedule
        """
        pass

    def __repr__(self):
        return "%s(%s)" % (self.__class__.__name__, self.name)


class AnalysisPass(Pass):
    """Base class for analysis passes."""
    destructive = False


class TransformationPass(Pass):
    """Base class for transformation passes."""
    destructive = True


class PassRegistry(object):
    """Explicit mapping from stage name to pass class."""

    def __init__(self):
        self._factories: Dict[str, type] = {}

    def register(self, factory, name: Optional[str] = None):
        """Register a pass class; usable as a class decorator."""
        name = name or factory.name
        if not name:
            raise ConfigurationError("Pass %r has no name" % factory)
        if name in self._factories:
            raise ConfigurationError("Pass '%s' already registered" % name)
        self._factories[name] = factory
        return factory

    def __contains__(self, name):
        return name in self._factories

    def __getitem__(self, name):
        try:
            return self._factories[name]
        except KeyError:
            raise ConfigurationError("Unknown pass '%s'" % name) from None

    def names(self) -> List[str]:
        return list(self._factories)

    def dependency_graph(self, name: str) -> nx.DiGraph:
        """The dependency closure of ``name``; edges point at dependencies.

        Raises:
            ConfigurationError: If any pass in the closure is unknown.
        """
        graph = nx.DiGraph()
        graph.add_node(name)
        work = [name]
        while work:
            current = work.pop()
            for dep in self[current].depends:
                if dep not in self._factories:
                    raise ConfigurationError("Unknown pass '%s' (a dependency of '%s')"
                                             % (dep, current))
                if dep not in graph:
                    work.append(dep)
                graph.add_edge(current, dep)
        return graph

    def validate(self, name: str) -> nx.DiGraph:
        """Check that ``name`` and its dependencies can be scheduled.

        Raises:
            ConfigurationError: For an unknown pass or a dependency cycle.
        """
        graph = self.dependency_graph(name)
        try:
            cycle = nx.find_cycle(graph, source=name)
        except nx.NetworkXNoCycle:
            return graph
        raise ConfigurationError("Dependency cycle: %s"
                                 % " -> ".join([u for u, _ in cycle] + [cycle[0][0]]))


class ScheduleState(object):
    """
    Mutable state of the scheduler.

    Attributes:
        pending: Stage names still to run; the head runs next
        analysis_cache: Completed passes whose results are still valid
        transformation_cache: Destructive passes applied during the run
        programs: Live programs
    """
    __slots__ = "pending", "analysis_cache", "transformation_cache", "programs"

    def __init__(self, programs):
        self.pending = collections.deque()
        self.analysis_cache: Dict[str, Pass] = {}
        self.transformation_cache: Dict[str, Pass] = {}
        self.programs = list(programs)

    def cached(self, name):
        return name in self.analysis_cache or name in self.transformation_cache


class PassManager(object):
    """Scheduler running registered passes over a set of programs."""

    def __init__(self, context, registry: PassRegistry, programs):
        self.context = context
        self.registry = registry
        self.state = ScheduleState(programs)
        self.execution_log: List[Dict[str, Any]] = []

    @property
    def programs(self):
        return list(self.state.programs)

    def request(self, name: str) -> None:
        """Queue ``name`` ahead of every pending stage.

        Raises:
            ConfigurationError: If the stage or a dependency is unknown, or
                the dependencies form a cycle.
        """
        self.registry.validate(name)
        self.state.pending.appendleft(name)

    def result(self, name: str) -> Optional[Pass]:
        """The cached pass instance for ``name``, if any."""
        if name in self.state.analysis_cache:
            return self.state.analysis_cache[name]
        return self.state.transformation_cache.get(name)

    def step(self) -> Optional[str]:
        """Process the head of the queue.

        Returns:
            The stage name popped, or None if the queue was empty.
        """
        state = self.state
        if not state.pending:
            return None

        name = state.pending.popleft()
        if state.cached(name):
            LOG.debug("skipping cached stage %s", name)
            return name

        factory = self.registry[name]
        missing = [dep for dep in factory.depends if not state.cached(dep)]

        if missing:
            destructive = [dep for dep in missing if self.registry[dep].destructive]
            others = [dep for dep in missing if not self.registry[dep].destructive]
            LOG.debug("stage %s waits for %s", name, ", ".join(destructive + others))
            state.pending.extendleft(reversed(destructive + others + [name]))
        else:
            self._execute(name, factory)

        return name

    def run(self):
        """Step until the queue is empty; returns the live programs."""
        while self.state.pending:
            self.step()
        return self.programs

    def _execute(self, name, factory):
        state = self.state
        start = time.perf_counter()

        with self.context.console.scope(name):
            results = {dep: state.analysis_cache[dep]
                       for dep in factory.depends if dep in state.analysis_cache}
            instance = factory(self.context, results)

            updated = False
            for program in list(state.programs):
                effect = instance.run(program)

                if isinstance(effect, NoEffect):
                    pass
                elif isinstance(effect, Replace):
                    state.programs = list(effect.programs)
                elif isinstance(effect, Schedule):
                    for stage in effect.stages:
                        self.registry.validate(stage)
                    state.pending.extendleft(reversed(effect.stages))
                elif isinstance(effect, Changed):
                    updated |= effect.changed
                else:
                    raise InternalError("Pass '%s' returned %r instead of an Effect"
                                        % (name, effect))

            outcome = "changed" if updated else "unchanged"
            self.context.console.verbose_output(
                "%d program(s), %s" % (len(state.programs), outcome))

            if instance.destructive:
                state.transformation_cache[name] = instance
                if updated:
                    LOG.debug("stage %s changed the program; dropping %d cached analyses",
                              name, len(state.analysis_cache))
                    state.analysis_cache.clear()
            state.analysis_cache[name] = instance

        elapsed = time.perf_counter() - start
        self.context.stats[name] = {"time": elapsed, "updated": updated,
                                    "programs": len(state.programs)}
        self.execution_log.append({"pass": name, "changed": updated, "time": elapsed})
