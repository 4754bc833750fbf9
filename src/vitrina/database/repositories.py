"""
Repositorios para operaciones CRUD en Supabase.

Cada repositorio maneja una tabla/entidad específica. Cualquier fallo del
store se registra y se propaga como StoreUnavailable; no hay reintentos.
"""

from typing import Iterable, Optional

import structlog

from vitrina.database.predicates import apply_predicate
from vitrina.database.supabase_client import get_supabase_client, SupabaseClient
from vitrina.errors import StoreUnavailable
from vitrina.models import Favorite, Listing, Recommendation
from vitrina.query.filters import CompiledPredicate

logger = structlog.get_logger()


class BaseRepository:
    """Clase base para repositorios."""

    TABLE = ""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or get_supabase_client()

    @property
    def client(self) -> SupabaseClient:
        return self._client

    def _execute(self, query, operation: str, **context) -> list[dict]:
        """Ejecuta un query builder y devuelve sus filas."""
        try:
            response = query.execute()
        except Exception as e:
            logger.error(
                "Error ejecutando operación en Supabase",
                table=self.TABLE,
                operation=operation,
                error=str(e),
                **context,
            )
            raise StoreUnavailable(
                f"Supabase {self.TABLE}.{operation} falló: {e}"
            ) from e
        return response.data or []


class ListingRepository(BaseRepository):
    """Repositorio para propiedades (listings)."""

    TABLE = "listings"

    def find(self, predicate: CompiledPredicate, limit: int = 10) -> list[dict]:
        """
        Búsqueda por predicado compilado.

        Returns:
            Hasta `limit` propiedades, las más recientes primero
        """
        query = apply_predicate(self.client.table(self.TABLE).select("*"), predicate)
        query = query.order("createdAt", desc=True).limit(limit)
        return self._execute(query, "find", predicate=predicate.as_dict())

    def get_by_id(self, listing_id: str) -> Optional[dict]:
        """Obtiene una propiedad por su ID."""
        query = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", listing_id)
            .limit(1)
        )
        rows = self._execute(query, "get_by_id", listing_id=listing_id)
        return rows[0] if rows else None

    def create(self, listing: Listing) -> dict:
        """Inserta una nueva propiedad."""
        data = listing.to_db_dict()
        rows = self._execute(
            self.client.table(self.TABLE).insert(data), "create", listing_id=listing.id
        )
        logger.info(
            "Propiedad creada",
            listing_id=listing.id,
            created_by=listing.created_by,
        )
        return rows[0] if rows else data

    def update(self, listing_id: str, owner_id: str, patch: dict) -> int:
        """
        Actualiza una propiedad del usuario.

        Returns:
            Cantidad de filas afectadas (0 si no existe o no es del usuario)
        """
        query = (
            self.client.table(self.TABLE)
            .update(patch)
            .eq("id", listing_id)
            .eq("createdBy", owner_id)
        )
        rows = self._execute(query, "update", listing_id=listing_id)
        return len(rows)

    def delete(self, listing_id: str, owner_id: str) -> int:
        """Elimina una propiedad del usuario. Devuelve filas eliminadas."""
        query = (
            self.client.table(self.TABLE)
            .delete()
            .eq("id", listing_id)
            .eq("createdBy", owner_id)
        )
        rows = self._execute(query, "delete", listing_id=listing_id)
        return len(rows)


class FavoriteRepository(BaseRepository):
    """Repositorio para favoritos."""

    TABLE = "favorites"

    def listing_ids_for_user(
        self, user_id: str, listing_ids: Iterable[str]
    ) -> set[str]:
        """IDs de `listing_ids` que el usuario tiene en favoritos."""
        listing_ids = list(listing_ids)
        if not listing_ids:
            return set()
        query = (
            self.client.table(self.TABLE)
            .select("listingId")
            .eq("userId", user_id)
            .in_("listingId", listing_ids)
        )
        rows = self._execute(query, "listing_ids_for_user", user_id=user_id)
        return {row["listingId"] for row in rows}

    def exists(self, user_id: str, listing_id: str) -> bool:
        query = (
            self.client.table(self.TABLE)
            .select("id")
            .eq("userId", user_id)
            .eq("listingId", listing_id)
            .limit(1)
        )
        return len(self._execute(query, "exists", user_id=user_id)) > 0

    def create(self, favorite: Favorite) -> dict:
        """Registra un favorito."""
        data = favorite.to_db_dict()
        rows = self._execute(
            self.client.table(self.TABLE).insert(data), "create", user_id=favorite.user_id
        )
        logger.info(
            "Favorito agregado",
            user_id=favorite.user_id,
            listing_id=favorite.listing_id,
        )
        return rows[0] if rows else data

    def delete(self, user_id: str, listing_id: str) -> int:
        query = (
            self.client.table(self.TABLE)
            .delete()
            .eq("userId", user_id)
            .eq("listingId", listing_id)
        )
        return len(self._execute(query, "delete", user_id=user_id))

    def favorite_listings(self, user_id: str) -> list[dict]:
        """Favoritos del usuario con la propiedad embebida en `listings`."""
        query = (
            self.client.table(self.TABLE)
            .select("*, listings(*)")
            .eq("userId", user_id)
            .order("createdAt", desc=True)
        )
        return self._execute(query, "favorite_listings", user_id=user_id)

    def delete_by_listing(self, listing_id: str) -> list[dict]:
        """Elimina los favoritos de una propiedad. Devuelve las filas borradas."""
        query = self.client.table(self.TABLE).delete().eq("listingId", listing_id)
        return self._execute(query, "delete_by_listing", listing_id=listing_id)


class RecommendationRepository(BaseRepository):
    """Repositorio para recomendaciones entre usuarios."""

    TABLE = "recommendations"

    def create(self, recommendation: Recommendation) -> dict:
        data = recommendation.to_db_dict()
        rows = self._execute(
            self.client.table(self.TABLE).insert(data),
            "create",
            from_user_id=recommendation.from_user_id,
        )
        logger.info(
            "Recomendación registrada",
            from_user_id=recommendation.from_user_id,
            to_user_id=recommendation.to_user_id,
            listing_id=recommendation.listing_id,
        )
        return rows[0] if rows else data

    def for_recipient(self, user_id: str) -> list[dict]:
        """Recomendaciones recibidas con la propiedad embebida en `listings`."""
        query = (
            self.client.table(self.TABLE)
            .select("*, listings(*)")
            .eq("toUserId", user_id)
            .order("createdAt", desc=True)
        )
        return self._execute(query, "for_recipient", user_id=user_id)

    def delete_by_listing(self, listing_id: str) -> list[dict]:
        query = self.client.table(self.TABLE).delete().eq("listingId", listing_id)
        return self._execute(query, "delete_by_listing", listing_id=listing_id)


class UserRepository(BaseRepository):
    """Repositorio para usuarios (solo lectura)."""

    TABLE = "users"

    def get_by_email(self, email: str) -> Optional[dict]:
        """Obtiene un usuario por su email."""
        query = (
            self.client.table(self.TABLE)
            .select("id, email")
            .eq("email", email)
            .limit(1)
        )
        rows = self._execute(query, "get_by_email")
        return rows[0] if rows else None
