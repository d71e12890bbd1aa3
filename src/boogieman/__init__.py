"""boogieman: analysis and transformation passes for Boogie programs."""

__version__ = "0.1.0"
