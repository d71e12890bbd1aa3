"""
Utility modules for boogieman.

- Type-based dispatch system (typedispatch.py)
- Console output and phase timing (application/console.py)
"""
