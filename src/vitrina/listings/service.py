"""
Servicio de propiedades.

Orquesta lecturas cacheadas y mutaciones con su invalidación:

Lecturas (read-through):
- fetch_list:           listado filtrado, clave `property:list:<hash>`
- get_listing:          detalle, clave `property:detail:<hash>`
- get_favorites:        clave `favorites:user:<id>`
- get_recommendations:  clave `recommendations:user:<id>`

Mutaciones (invalidación en segundo plano tras el commit en el store):
- create de propiedades -> namespaces de propiedades
- update de propiedades -> además favoritos y recomendaciones de todos
- delete de propiedades -> favoritos/recomendaciones afectados + namespaces
- add/remove de favoritos -> favoritos del usuario + namespaces de propiedades
- recomendaciones -> recomendaciones del destinatario

La identidad del usuario llega siempre como parámetro explícito.
"""

from typing import Any, Mapping, Optional

import structlog
from pydantic import ValidationError

from vitrina.cache import (
    CacheInvalidator,
    FetchResult,
    RedisCache,
    ReadThroughCache,
    get_redis_cache,
)
from vitrina.config import Settings, get_settings
from vitrina.database import (
    FavoriteRepository,
    ListingRepository,
    RecommendationRepository,
    UserRepository,
)
from vitrina.errors import (
    AlreadyFavorite,
    FavoriteNotFound,
    InvalidPayload,
    ListingNotFound,
    NotAuthorized,
    RecipientNotFound,
    StoreUnavailable,
)
from vitrina.listings.annotators import (
    annotate_favorites,
    merge_favorites,
    merge_recommendations,
)
from vitrina.models import Favorite, Listing, Recommendation, build_update_patch
from vitrina.models.listing import IMMUTABLE_FIELDS
from vitrina.query import (
    compile_filters,
    detail_key,
    encode_cache_key,
    favorites_key,
    recommendations_key,
)
from vitrina.query.filters import RawFilters

logger = structlog.get_logger()


def require_identity(identity: Optional[str]) -> str:
    """Valida que haya una identidad autenticada."""
    if not isinstance(identity, str) or not identity.strip():
        raise NotAuthorized("Falta la identidad del usuario")
    return identity


class ListingService:
    """
    Punto de entrada del core para los handlers de la API.

    Los repositorios, el cache y el invalidador se inyectan; por defecto se
    construyen desde la configuración global.
    """

    def __init__(
        self,
        listings: Optional[ListingRepository] = None,
        favorites: Optional[FavoriteRepository] = None,
        recommendations: Optional[RecommendationRepository] = None,
        users: Optional[UserRepository] = None,
        cache: Optional[RedisCache] = None,
        invalidator: Optional[CacheInvalidator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.listings = listings or ListingRepository()
        self.favorites = favorites or FavoriteRepository()
        self.recommendations = recommendations or RecommendationRepository()
        self.users = users or UserRepository()

        cache = cache or get_redis_cache()
        self.read_through = ReadThroughCache(cache, self.settings.cache_ttl_seconds)
        self.invalidator = invalidator or CacheInvalidator(
            cache, scan_count=self.settings.cache_scan_count
        )

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def fetch_list(self, identity: str, raw_filters: RawFilters) -> FetchResult:
        """
        Listado de propiedades filtrado, cacheado por (usuario, filtros).

        Args:
            identity: Usuario autenticado
            raw_filters: Parámetros de la query string

        Returns:
            FetchResult con la lista JSON de propiedades

        Raises:
            NotAuthorized: sin identidad
            StoreUnavailable: miss de cache y el store falló
        """
        identity = require_identity(identity)
        key = encode_cache_key(identity, raw_filters)

        def compute() -> list[dict]:
            predicate = compile_filters(raw_filters)
            logger.debug("Consultando propiedades", key=key, predicate=predicate.as_dict())
            rows = self.listings.find(predicate, self.settings.list_page_limit)
            return annotate_favorites(rows, identity, self.favorites)

        result = self.read_through.fetch(key, compute)
        logger.info(
            "Listado de propiedades",
            user_id=identity,
            from_cache=result.from_cache,
        )
        return result

    def get_listing(self, identity: str, listing_id: str) -> FetchResult:
        """Detalle de una propiedad, con `isFavorite` para el usuario."""
        identity = require_identity(identity)

        def compute() -> dict:
            row = self.listings.get_by_id(listing_id)
            if row is None:
                raise ListingNotFound(f"No existe la propiedad {listing_id}")
            return annotate_favorites([row], identity, self.favorites)[0]

        return self.read_through.fetch(detail_key(identity, listing_id), compute)

    def get_favorites(self, identity: str) -> FetchResult:
        """Propiedades favoritas del usuario."""
        identity = require_identity(identity)
        return self.read_through.fetch(
            favorites_key(identity),
            lambda: merge_favorites(self.favorites.favorite_listings(identity)),
        )

    def get_recommendations(self, identity: str) -> FetchResult:
        """Propiedades recomendadas al usuario, con `recommendedBy`."""
        identity = require_identity(identity)
        return self.read_through.fetch(
            recommendations_key(identity),
            lambda: merge_recommendations(self.recommendations.for_recipient(identity)),
        )

    # =========================================================================
    # PROPIEDADES
    # =========================================================================

    def create_listing(self, identity: str, payload: Mapping[str, Any]) -> dict:
        """
        Publica una propiedad a nombre del usuario.

        Los identificadores y el autor del payload se ignoran.

        Raises:
            InvalidPayload: si el payload no es una propiedad válida
        """
        identity = require_identity(identity)
        data = {k: v for k, v in payload.items() if k not in IMMUTABLE_FIELDS}
        data["createdBy"] = identity
        try:
            listing = Listing.model_validate(data)
        except ValidationError as e:
            raise InvalidPayload(f"Propiedad inválida: {e}") from e

        created = self.listings.create(listing)
        self.invalidator.listings_changed()
        return created

    def update_listing(
        self, identity: str, listing_id: str, raw_patch: Mapping[str, Any]
    ) -> dict:
        """
        Actualiza campos mutables de una propiedad del usuario.

        Returns:
            El patch aplicado

        Raises:
            InvalidPayload: sin campos actualizables o con tipos incorrectos
            ListingNotFound: no existe o no pertenece al usuario
        """
        identity = require_identity(identity)
        patch = build_update_patch(raw_patch)
        if not patch:
            raise InvalidPayload("El payload no contiene campos actualizables")

        matched = self.listings.update(listing_id, identity, patch)
        if matched == 0:
            logger.info(
                "Actualización sin coincidencias",
                listing_id=listing_id,
                user_id=identity,
            )
            raise ListingNotFound(
                f"No existe la propiedad {listing_id} o no pertenece al usuario"
            )

        self.invalidator.listing_updated()
        return patch

    def delete_listing(self, identity: str, listing_id: str) -> None:
        """
        Elimina una propiedad del usuario y sus favoritos/recomendaciones.

        Raises:
            ListingNotFound: no existe o no pertenece al usuario
        """
        identity = require_identity(identity)
        deleted = self.listings.delete(listing_id, identity)
        if deleted == 0:
            raise ListingNotFound(
                f"No existe la propiedad {listing_id} o no pertenece al usuario"
            )

        try:
            favorite_rows = self.favorites.delete_by_listing(listing_id)
            recommendation_rows = self.recommendations.delete_by_listing(listing_id)
        except StoreUnavailable:
            # La propiedad ya no existe y no se sabe qué usuarios quedaron
            # afectados: se invalidan todas las vistas que la copian
            self.invalidator.listing_updated()
            raise

        logger.info(
            "Propiedad eliminada",
            listing_id=listing_id,
            favorites_removed=len(favorite_rows),
            recommendations_removed=len(recommendation_rows),
        )
        self.invalidator.listing_removed(
            [row["userId"] for row in favorite_rows],
            [row["toUserId"] for row in recommendation_rows],
        )

    # =========================================================================
    # FAVORITOS
    # =========================================================================

    def add_favorite(self, identity: str, listing_id: str) -> dict:
        """
        Agrega una propiedad a favoritos.

        Raises:
            ListingNotFound: la propiedad no existe
            AlreadyFavorite: ya estaba en favoritos
        """
        identity = require_identity(identity)
        if not listing_id:
            raise InvalidPayload("listing_id es requerido")
        if self.listings.get_by_id(listing_id) is None:
            raise ListingNotFound(f"No existe la propiedad {listing_id}")
        if self.favorites.exists(identity, listing_id):
            raise AlreadyFavorite(f"La propiedad {listing_id} ya está en favoritos")

        created = self.favorites.create(Favorite(user_id=identity, listing_id=listing_id))
        self.invalidator.favorites_changed(identity)
        return created

    def remove_favorite(self, identity: str, listing_id: str) -> None:
        """Quita una propiedad de favoritos."""
        identity = require_identity(identity)
        if self.favorites.delete(identity, listing_id) == 0:
            raise FavoriteNotFound(
                f"La propiedad {listing_id} no está en favoritos"
            )
        self.invalidator.favorites_changed(identity)

    # =========================================================================
    # RECOMENDACIONES
    # =========================================================================

    def recommend_listing(self, identity: str, to_email: str, listing_id: str) -> dict:
        """
        Recomienda una propiedad a otro usuario identificado por email.

        Raises:
            InvalidPayload: falta email o propiedad
            RecipientNotFound: no hay usuario con ese email
            ListingNotFound: la propiedad no existe
        """
        identity = require_identity(identity)
        if not to_email:
            raise InvalidPayload("El email destinatario es requerido")
        if not listing_id:
            raise InvalidPayload("listing_id es requerido")

        recipient = self.users.get_by_email(to_email)
        if recipient is None:
            raise RecipientNotFound(f"No existe un usuario con email {to_email}")
        if self.listings.get_by_id(listing_id) is None:
            raise ListingNotFound(f"No existe la propiedad {listing_id}")

        recommendation = Recommendation(
            from_user_id=identity,
            to_user_id=recipient["id"],
            to_email=to_email,
            listing_id=listing_id,
        )
        created = self.recommendations.create(recommendation)
        self.invalidator.recommendations_changed(recipient["id"])
        return created
