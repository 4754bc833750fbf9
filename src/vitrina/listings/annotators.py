"""
Anotadores de resultados.

Joins de solo lectura entre propiedades y relaciones del usuario. Corren
dentro del miss del cache, así que lo que producen es lo que se cachea.
"""

from typing import Iterable, Optional

import structlog

logger = structlog.get_logger()


def annotate_favorites(listings: list[dict], identity: str, favorites) -> list[dict]:
    """
    Marca `isFavorite` en cada propiedad del resultado.

    Hace una única consulta de favoritos restringida a los IDs presentes.

    Args:
        listings: Propiedades devueltas por el store
        identity: Usuario que consulta
        favorites: FavoriteRepository (o compatible)
    """
    if not listings:
        return listings

    favorite_ids = favorites.listing_ids_for_user(
        identity, [listing["id"] for listing in listings]
    )
    for listing in listings:
        listing["isFavorite"] = listing["id"] in favorite_ids
    return listings


def _embedded_listing(row: dict) -> Optional[dict]:
    embedded = row.get("listings")
    # PostgREST devuelve objeto para FK many-to-one, pero toleramos lista
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    return embedded


def merge_favorites(rows: Iterable[dict]) -> list[dict]:
    """Aplana filas favorito+propiedad en propiedades con `isFavorite=True`."""
    merged = []
    for row in rows:
        listing = _embedded_listing(row)
        if not listing:
            continue
        merged.append({**listing, "isFavorite": True})
    return merged


def merge_recommendations(rows: Iterable[dict]) -> list[dict]:
    """
    Aplana filas recomendación+propiedad.

    Cada registro es la propiedad con `recommendedBy` = usuario que la
    recomendó. Las recomendaciones cuya propiedad ya no existe se omiten.
    """
    merged = []
    for row in rows:
        listing = _embedded_listing(row)
        if not listing:
            logger.debug(
                "Recomendación sin propiedad, se omite",
                recommendation_id=row.get("id"),
            )
            continue
        merged.append({**listing, "recommendedBy": row.get("fromUserId")})
    return merged
