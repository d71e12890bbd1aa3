"""
Error handling for boogieman.

Every condition in this module is fatal for the current run: passes are not
retried and the exceptions are never swallowed by the framework.

- ConfigurationError: unknown stages or dependencies, dependency cycles,
  malformed annotations.
- StructuralError: misuse of the tree-mutation primitives by a pass.
- UnsupportedProgram: a program shape a transformation cannot interpret,
  usually produced by an earlier pass.
"""


class BoogiemanError(Exception):
    """Root of the boogieman exception hierarchy."""
    pass


class ConfigurationError(BoogiemanError):
    """
    Exception raised for an inconsistent pass configuration.

    Raised when a requested stage or one of its (transitive) dependencies
    is not registered, when the dependency graph has a cycle, or when an
    annotation does not have the shape a pass expects.
    """
    pass


class InternalError(BoogiemanError):
    """
    Exception raised for internal errors in boogieman.

    This exception indicates a bug in a pass or in the framework, as opposed
    to a problem with the program being processed.
    """
    pass


class StructuralError(InternalError):
    """
    Exception raised for an invalid tree mutation.

    Inserting into a slot the node does not have, inserting several values
    into a scalar slot, overwriting an occupied scalar slot without in-place
    mode, or linking a node that already has a parent.
    """
    pass


class UnsupportedProgram(BoogiemanError):
    """
    Exception raised when a pass meets a program it cannot interpret.
    """
    pass

