"""
Módulo de consultas.

Compilación de filtros de request y derivación de claves de cache.
"""

from vitrina.query.filters import (
    compile_filters,
    CompiledPredicate,
    InSet,
    Bounds,
    Equals,
    AnyContains,
    Operator,
    FieldKind,
    FIELD_KINDS,
)
from vitrina.query.cache_keys import (
    encode_cache_key,
    detail_key,
    favorites_key,
    recommendations_key,
    LIST_NAMESPACE,
    DETAIL_NAMESPACE,
    FAVORITES_PREFIX,
    RECOMMENDATIONS_PREFIX,
    LISTING_NAMESPACES,
)

__all__ = [
    # Filtros
    "compile_filters",
    "CompiledPredicate",
    "InSet",
    "Bounds",
    "Equals",
    "AnyContains",
    "Operator",
    "FieldKind",
    "FIELD_KINDS",
    # Claves
    "encode_cache_key",
    "detail_key",
    "favorites_key",
    "recommendations_key",
    "LIST_NAMESPACE",
    "DETAIL_NAMESPACE",
    "FAVORITES_PREFIX",
    "RECOMMENDATIONS_PREFIX",
    "LISTING_NAMESPACES",
]
