"""
Context management for boogieman pipelines.

The CompilerContext is the one object passed to the pipeline, the scheduler
and every pass constructor. It replaces process-wide flags and registries:

- `options`: run configuration (verbosity, warnings, keep temporaries,
  output file)
- `console`: hierarchical phase output with timing
- `stats`: per-stage statistics
- scoped resources: temporary files and tree observers acquired through the
  context are released when the context exits, on every exit path

**Usage:**
```python
with CompilerContext(options=Options(keep_files=False)) as context:
    pipeline = Pipeline(context, [program])
    pipeline.request("shadowing")
    pipeline.run()
```
"""

import collections
import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from boogieman.language.asttools.metaast import observing
from boogieman.util.application.console import Console

LOG = logging.getLogger(__name__)


@dataclass
class Options:
    """Run configuration.

    Attributes:
        verbose: Report memory usage and verbose messages on the console.
        quiet: Suppress console output entirely.
        warnings: Log warnings raised by passes.
        keep_files: Keep temporary files after the context exits.
        output_file: Where Pipeline.write() puts the transformed programs.
    """
    verbose: bool = False
    quiet: bool = False
    warnings: bool = True
    keep_files: bool = False
    output_file: Optional[str] = None


class CompilerContext(object):
    """
    Shared state of one pipeline run.

    Attributes:
        options: Options of the run
        console: Console used to time and report stages
        stats: Statistics collection (stage name -> dict)
    """
    __slots__ = "options", "console", "stats", "_resources", "_temporaries", "_observers"

    def __init__(self, console=None, options=None):
        """
        Args:
            console: Console for output. If None, one is created from the options.
            options: Options of the run. If None, the defaults are used.
        """
        self.options = options if options is not None else Options()
        if console is None:
            console = Console(verbose=self.options.verbose, quiet=self.options.quiet)
        self.console = console
        self.stats = collections.defaultdict(dict)
        self._resources = contextlib.ExitStack()
        self._temporaries = []
        self._observers = []

    def __enter__(self):
        return self

    def __exit__(self, type, value, tb):
        self.close()
        return False

    def close(self):
        """Release every resource acquired through this context."""
        self._resources.close()
        del self._observers[:]

    def observe(self, observer):
        """Register a tree observer until the context is closed.

        Registering the same observer twice through one context is a no-op.
        Other contexts holding the same observer keep their own registration.
        """
        if not any(observer is other for other in self._observers):
            self._observers.append(observer)
            self._resources.enter_context(observing(observer))
        return observer

    @property
    def temporaries(self):
        return list(self._temporaries)

    def temporary_file(self, suffix="", text=None):
        """Create a temporary file, deleted when the context closes.

        Args:
            suffix: File name suffix, e.g. ".bpl".
            text: Initial contents.

        Returns:
            str: Path of the new file.
        """
        fd, path = tempfile.mkstemp(suffix=suffix, prefix="boogieman-")
        with os.fdopen(fd, "w") as f:
            if text:
                f.write(text)

        self._temporaries.append(path)
        self._resources.callback(self._discard, path)
        return path

    def _discard(self, path):
        self._temporaries.remove(path)
        if self.options.keep_files:
            LOG.info("keeping temporary file %s", path)
        elif os.path.exists(path):
            os.unlink(path)
