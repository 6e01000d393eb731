"""Retrievers for lexical and semantic candidates, plus result hydration.

Retrievers encapsulate how candidates are fetched from the fragment store and
the vector cache before fusion. Splitting retrieval from ranking keeps the
pipeline modular and testable.
"""
