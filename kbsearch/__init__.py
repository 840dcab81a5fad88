"""
KB Search - Hybrid keyword + semantic search for a notes and recipes knowledge base.

Example:
    >>> from kbsearch.interfaces.api.deps import get_search_engine
    >>> engine = get_search_engine()
    >>> response = await engine.search({"query": "weeknight pasta", "scope": "recipes"})
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
