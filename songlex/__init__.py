"""
Corpus analysis of bird voice descriptions from field guides.

The modules inside this package implement a linear pipeline: load guide
exports, normalize sizes and voice text, cross-reference the vocabulary with
psycholinguistic word lists, and explore it with LSA. The public entrypoint is
``songlex.run.main``.
"""

__all__ = [
    "config",
    "ingest",
    "length",
    "noise",
    "normalize",
    "lexicon",
    "describe",
    "lsa",
    "cluster",
    "plots",
]
