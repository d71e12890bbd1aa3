"""Language support for boogieman.

- asttools: the generic node framework shared by every pass
- boogie: Boogie node classes, source output and statement def/use
"""
