"""Hybrid search components for semantic + lexical ranking.

Includes the ``HybridSearcher`` which runs full-text (lexical) and vector
similarity (semantic) retrieval concurrently, fuses the two id lists and
hydrates the winners.
"""
