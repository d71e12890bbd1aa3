"""Transformation passes over Boogie programs."""
