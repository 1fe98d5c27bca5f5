"""
KBSearch - Hybrid knowledge-base retrieval for event safety guidance.

Example:
    >>> from kbsearch.services import open_services
    >>> from kbsearch.domains.search import SearchRequest
    >>> services = await open_services()
    >>> hits = await services.orchestrator.search(SearchRequest(query="crowd surge at gate 4"))
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
