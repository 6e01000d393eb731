"""Search ranking and result fusion components.

Contents
- ``fusion``: reciprocal rank fusion of the lexical and semantic id lists
"""
