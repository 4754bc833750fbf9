"""
vitrina: backend de publicación de propiedades con cache coherente.

Operaciones expuestas a los handlers: compile_filters, encode_cache_key,
invalidate_namespace y ListingService.fetch_list.
"""

from vitrina.query import compile_filters, encode_cache_key
from vitrina.cache import invalidate_namespace
from vitrina.listings import ListingService

__all__ = [
    "compile_filters",
    "encode_cache_key",
    "invalidate_namespace",
    "ListingService",
]
