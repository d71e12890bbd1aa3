"""
Tests for the pass scheduler.

- idempotent completion of requested stages
- invalidation of cached analyses by destructive passes
- destructive dependencies run before non-destructive ones
- Replace and Schedule effects
- fail-fast configuration errors (unknown stages, cycles)
"""

from __future__ import annotations

import io

import pytest

from boogieman.application.context import CompilerContext
from boogieman.application.errors import ConfigurationError, InternalError
from boogieman.application.passmanager import (
    NO_EFFECT,
    Changed,
    Pass,
    PassKind,
    PassManager,
    PassRegistry,
    Replace,
    Schedule,
)
from boogieman.language.boogie import ast
from boogieman.util.application.console import Console


class Harness:
    """A registry of recording passes plus a manager over one program."""

    def __init__(self, context):
        self.context = context
        self.registry = PassRegistry()
        self.log = []
        self.instances = {}
        self.program = ast.Program([])

    def define(self, name, depends=(), destructive=False, effect=NO_EFFECT):
        log, instances = self.log, self.instances

        def run(self, program):
            log.append(name)
            instances[name] = self
            return effect

        factory = type("Pass_" + name, (Pass,), {
            "name": name,
            "depends": tuple(depends),
            "destructive": destructive,
            "run": run,
        })
        return self.registry.register(factory)

    def manager(self, programs=None):
        return PassManager(self.context, self.registry,
                           programs if programs is not None else [self.program])


@pytest.fixture
def harness(context):
    return Harness(context)


def test_request_twice_runs_once(harness):
    harness.define("A")
    manager = harness.manager()

    manager.request("A")
    manager.request("A")
    manager.run()

    assert harness.log == ["A"]
    assert "A" in manager.state.analysis_cache
    assert "A" not in manager.state.transformation_cache


def test_dependencies_run_first_and_results_are_injected(harness):
    harness.define("A")
    harness.define("B", depends=["A"])
    manager = harness.manager()

    manager.request("B")
    manager.run()

    assert harness.log == ["A", "B"]
    b = harness.instances["B"]
    assert b.analysis("A") is harness.instances["A"]
    assert manager.result("B") is b


def test_undeclared_result_is_a_configuration_error(harness):
    harness.define("A")
    manager = harness.manager()
    manager.request("A")
    manager.run()

    with pytest.raises(ConfigurationError):
        harness.instances["A"].analysis("B")


def test_destructive_change_invalidates_analyses(harness):
    harness.define("A")
    harness.define("B", depends=["A"], destructive=True, effect=Changed(True))
    manager = harness.manager()

    manager.request("B")
    manager.run()
    assert harness.log == ["A", "B"]
    assert set(manager.state.analysis_cache) == {"B"}
    assert set(manager.state.transformation_cache) == {"B"}

    manager.request("A")
    manager.run()
    assert harness.log == ["A", "B", "A"]


def test_destructive_without_change_keeps_analyses(harness):
    harness.define("A")
    harness.define("B", depends=["A"], destructive=True, effect=Changed(False))
    manager = harness.manager()

    manager.request("B")
    manager.run()
    manager.request("A")
    manager.run()

    assert harness.log == ["A", "B"]
    assert set(manager.state.analysis_cache) == {"A", "B"}


def test_transformations_run_once_per_run(harness):
    harness.define("B", destructive=True, effect=Changed(True))
    manager = harness.manager()

    manager.request("B")
    manager.run()
    manager.request("B")
    manager.run()

    assert harness.log == ["B"]


def test_destructive_dependencies_run_first(harness):
    harness.define("Y")
    harness.define("X", destructive=True)
    harness.define("Z", depends=["Y", "X"])
    manager = harness.manager()

    manager.request("Z")
    manager.run()

    assert harness.log == ["X", "Y", "Z"]


def test_step_requeues_behind_missing_dependencies(harness):
    harness.define("Y")
    harness.define("X", destructive=True)
    harness.define("Z", depends=["Y", "X"])
    manager = harness.manager()

    manager.request("Z")
    assert manager.step() == "Z"
    assert list(manager.state.pending) == ["X", "Y", "Z"]
    assert harness.log == []


def test_step_on_empty_queue(harness):
    assert harness.manager().step() is None


def test_replace_forks_programs(harness):
    first, second = ast.Program([]), ast.Program([])
    harness.define("Fork", destructive=True, effect=Replace([first, second]))
    harness.define("A", depends=["Fork"])
    manager = harness.manager()

    manager.request("A")
    programs = manager.run()

    assert programs == [first, second]
    assert harness.log == ["Fork", "A", "A"]


def test_schedule_pushes_stages_front(harness):
    harness.define("A")
    harness.define("B")
    harness.define("S", effect=Schedule(["A", "B"]))
    manager = harness.manager()

    manager.request("S")
    manager.run()

    assert harness.log == ["S", "A", "B"]


def test_schedule_unknown_stage(harness):
    harness.define("S", effect=Schedule(["missing"]))
    manager = harness.manager()
    manager.request("S")

    with pytest.raises(ConfigurationError):
        manager.run()


def test_invalid_effect(harness):
    harness.define("Bad", effect=None)
    manager = harness.manager()
    manager.request("Bad")

    with pytest.raises(InternalError):
        manager.run()


def test_unknown_stage(harness):
    manager = harness.manager()
    with pytest.raises(ConfigurationError):
        manager.request("missing")
    assert not manager.state.pending


def test_unknown_dependency_fails_on_request(harness):
    harness.define("A", depends=["missing"])
    manager = harness.manager()

    with pytest.raises(ConfigurationError, match="missing"):
        manager.request("A")
    assert not manager.state.pending
    assert harness.log == []


def test_dependency_cycle_fails_on_request(harness):
    harness.define("A", depends=["B"])
    harness.define("B", depends=["C"])
    harness.define("C", depends=["A"])
    manager = harness.manager()

    with pytest.raises(ConfigurationError, match="cycle"):
        manager.request("A")


def test_duplicate_registration(harness):
    harness.define("A")
    with pytest.raises(ConfigurationError):
        harness.define("A")


def test_pass_kind(harness):
    assert harness.define("T", destructive=True).kind() is PassKind.TRANSFORMATION
    assert harness.define("N").kind() is PassKind.ANALYSIS


def test_statistics(harness, context):
    harness.define("A")
    harness.define("B", depends=["A"], destructive=True, effect=Changed(True))
    manager = harness.manager()

    manager.request("B")
    manager.run()

    assert [entry["pass"] for entry in manager.execution_log] == ["A", "B"]
    assert manager.execution_log[1]["changed"] is True
    assert context.stats["B"]["updated"] is True
    assert context.stats["A"]["programs"] == 1


def test_verbose_console_reports_stage_outcome():
    out = io.StringIO()
    context = CompilerContext(console=Console(out, verbose=True))
    harness = Harness(context)
    harness.define("A")
    harness.define("B", depends=["A"], destructive=True, effect=Changed(True))

    manager = harness.manager()
    manager.request("B")
    manager.run()
    context.close()

    text = out.getvalue()
    assert "1 program(s), unchanged" in text
    assert "1 program(s), changed" in text


def test_quiet_console_stays_silent(harness):
    out = io.StringIO()
    harness.context.console.out = out
    harness.define("A")

    manager = harness.manager()
    manager.request("A")
    manager.run()

    assert out.getvalue() == ""
