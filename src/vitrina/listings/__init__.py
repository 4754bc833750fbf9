"""
Servicio de propiedades.

Lecturas cacheadas, mutaciones e invalidación.
"""

from vitrina.listings.service import ListingService, require_identity
from vitrina.listings.annotators import (
    annotate_favorites,
    merge_favorites,
    merge_recommendations,
)

__all__ = [
    "ListingService",
    "require_identity",
    "annotate_favorites",
    "merge_favorites",
    "merge_recommendations",
]
