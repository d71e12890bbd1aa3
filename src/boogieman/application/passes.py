"""The standard passes of boogieman.

Every stage a pipeline can request is registered here, once, by name.
"""

from boogieman.analysis.definitions import DefinitionLocalization
from boogieman.analysis.liveness import Liveness
from boogieman.analysis.loops import LoopIdentification
from boogieman.analysis.resolution import Resolution
from boogieman.transformation.shadowing import Shadowing

from .passmanager import PassRegistry

STANDARD_PASSES = (
    Resolution,
    LoopIdentification,
    DefinitionLocalization,
    Liveness,
    Shadowing,
)


def register_standard_passes(registry):
    for factory in STANDARD_PASSES:
        registry.register(factory)
    return registry


def standard_registry():
    return register_standard_passes(PassRegistry())
