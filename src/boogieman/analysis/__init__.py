"""Analysis passes over Boogie programs: name resolution, block graphs,
loops, definitions and liveness."""
