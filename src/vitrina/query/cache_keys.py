"""
Claves de cache.

La clave de un listado es un hash SHA-256 sobre la identidad del usuario y
el conjunto de filtros canonicalizado (nombres ordenados, valores
ordenados), de modo que el orden de los parámetros en la request no cambia
la clave. Los prefijos de namespace deben mantenerse estables: al reiniciar
puede haber entradas vivas en Redis creadas por la versión anterior.
"""

import hashlib
from typing import Sequence, Union
from urllib.parse import quote

from vitrina.query.filters import RawFilters

LIST_NAMESPACE = "property:list:"
DETAIL_NAMESPACE = "property:detail:"
FAVORITES_PREFIX = "favorites:user:"
RECOMMENDATIONS_PREFIX = "recommendations:user:"

# Namespaces que dependen del contenido de las propiedades
LISTING_NAMESPACES = (LIST_NAMESPACE, DETAIL_NAMESPACE)


def _escape(text: str) -> str:
    # Escapa separadores (":", "=", "&", ",") para que la concatenación sea inyectiva
    return quote(text, safe="")


def _as_values(raw: Union[str, Sequence[str], None]) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    return [str(item) for item in raw]


def canonical_filter_string(identity: str, raw: RawFilters) -> str:
    """
    Serializa (identidad, filtros) en forma canónica.

    Formato: `identidad:nombre=valor&nombre=valor...`, nombres y valores
    ordenados lexicográficamente.
    """
    pairs = []
    for name in sorted(raw):
        for value in sorted(_as_values(raw[name])):
            pairs.append(f"{_escape(name)}={_escape(value)}")
    return f"{_escape(identity)}:" + "&".join(pairs)


def fingerprint(identity: str, raw: RawFilters) -> str:
    """Digest hex SHA-256 de la forma canónica."""
    canonical = canonical_filter_string(identity, raw)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def encode_cache_key(
    identity: str,
    raw: RawFilters,
    namespace: str = LIST_NAMESPACE,
) -> str:
    """
    Deriva la clave de cache para un listado filtrado.

    Función pura: misma identidad y mismo multiconjunto de filtros
    producen siempre la misma clave.

    Example:
        >>> encode_cache_key("u1", {"state": ["NY", "CA"]}) == \\
        ...     encode_cache_key("u1", {"state": ["CA", "NY"]})
        True
    """
    return namespace + fingerprint(identity, raw)


def detail_key(identity: str, listing_id: str) -> str:
    """Clave del detalle de una propiedad vista por un usuario."""
    return encode_cache_key(identity, {"id": listing_id}, namespace=DETAIL_NAMESPACE)


def favorites_key(user_id: str) -> str:
    return FAVORITES_PREFIX + user_id


def recommendations_key(user_id: str) -> str:
    return RECOMMENDATIONS_PREFIX + user_id
