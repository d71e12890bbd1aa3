"""Boogie language support.

- ast: node classes for declarations, statements, expressions and types
- boogieoutput: rendering nodes back to Boogie source text
- defuse: variables read and written by each statement
"""
