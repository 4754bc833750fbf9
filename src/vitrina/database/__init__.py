"""
Módulo de base de datos.

Provee acceso a Supabase y operaciones CRUD.
"""

from vitrina.database.supabase_client import get_supabase_client, SupabaseClient
from vitrina.database.predicates import apply_predicate
from vitrina.database.repositories import (
    ListingRepository,
    FavoriteRepository,
    RecommendationRepository,
    UserRepository,
)

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "apply_predicate",
    "ListingRepository",
    "FavoriteRepository",
    "RecommendationRepository",
    "UserRepository",
]
