"""Pipeline infrastructure: compiler context, errors, passes and the scheduler."""
