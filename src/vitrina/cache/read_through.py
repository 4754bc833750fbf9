"""
Cache read-through.

Envuelve una lectura: si la clave está en cache se devuelve el payload
guardado sin tocar el store; si no, se calcula, se serializa, se guarda con
TTL y se devuelve. Una caída de Redis equivale a un miss: la lectura se
vuelve más lenta pero nunca falla por el cache.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from vitrina.cache.redis_client import RedisCache
from vitrina.errors import CacheUnavailable

logger = structlog.get_logger()


def serialize(data: Any) -> bytes:
    """Serializa a JSON compacto con claves ordenadas."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


@dataclass(frozen=True)
class FetchResult:
    """Resultado de una lectura cacheada."""

    key: str
    payload: bytes
    from_cache: bool

    def data(self) -> Any:
        return json.loads(self.payload)


class ReadThroughCache:
    """Cache read-through sobre Redis con TTL fijo."""

    def __init__(self, cache: RedisCache, ttl_seconds: int = 600):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def lookup(self, key: str) -> Optional[bytes]:
        """Busca una clave. Errores de Redis y entradas corruptas son miss."""
        try:
            cached = self.cache.get(key)
        except CacheUnavailable:
            logger.warning("Cache no disponible, se consulta el store", key=key)
            return None

        if cached is None:
            return None

        try:
            json.loads(cached)
        except ValueError:
            logger.warning("Entrada de cache corrupta, se recalcula", key=key)
            return None
        return cached

    def store(self, key: str, payload: bytes) -> bool:
        """Guarda un payload. Devuelve False si Redis falló."""
        try:
            self.cache.set(key, payload, self.ttl_seconds)
        except CacheUnavailable:
            logger.warning("No se pudo cachear la respuesta", key=key)
            return False
        return True

    def fetch(self, key: str, compute: Callable[[], Any]) -> FetchResult:
        """
        Obtiene el valor de `key`, calculándolo con `compute` si hace falta.

        Args:
            key: Clave de cache
            compute: Función sin argumentos que consulta el store

        Returns:
            FetchResult con el payload JSON

        Raises:
            Cualquier excepción de `compute` (ej: StoreUnavailable). En ese
            caso no se cachea nada.
        """
        cached = self.lookup(key)
        if cached is not None:
            logger.debug("Cache hit", key=key)
            return FetchResult(key=key, payload=cached, from_cache=True)

        logger.debug("Cache miss", key=key)
        payload = serialize(compute())
        self.store(key, payload)
        return FetchResult(key=key, payload=payload, from_cache=False)
