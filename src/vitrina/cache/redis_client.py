"""
Cliente de Redis.

Singleton para conexión al cache y wrapper que traduce los errores de
Redis a CacheUnavailable.
"""

from functools import lru_cache
from typing import Iterable, Optional

import structlog
from redis import Redis
from redis.exceptions import RedisError

from vitrina.config import get_settings
from vitrina.errors import CacheUnavailable

logger = structlog.get_logger()


class RedisCache:
    """Wrapper del cliente de Redis con las operaciones que usa el core."""

    def __init__(self, client: Redis):
        self._client = client

    @property
    def client(self) -> Redis:
        """Acceso directo al cliente de Redis."""
        return self._client

    def _fail(self, operation: str, error: Exception, **context) -> CacheUnavailable:
        logger.warning(
            "Error de Redis",
            operation=operation,
            error=str(error),
            **context,
        )
        return CacheUnavailable(f"Redis {operation} falló: {error}")

    def get(self, key: str) -> Optional[bytes]:
        """Obtiene el valor de una clave, None si no existe."""
        try:
            return self._client.get(key)
        except RedisError as e:
            raise self._fail("get", e, key=key) from e

    def set(self, key: str, value: bytes, ttl: int) -> None:
        """Guarda un valor con expiración en segundos."""
        try:
            self._client.set(key, value, ex=ttl)
        except RedisError as e:
            raise self._fail("set", e, key=key) from e

    def delete(self, *keys: str) -> int:
        """Elimina claves exactas. Devuelve cuántas existían."""
        if not keys:
            return 0
        try:
            return self._client.delete(*keys)
        except RedisError as e:
            raise self._fail("delete", e, keys=len(keys)) from e

    def scan(self, cursor: int, pattern: str, count: int) -> tuple[int, list]:
        """
        Una página de SCAN.

        Returns:
            (siguiente cursor, claves de la página). El cursor vuelve a 0
            cuando se recorrió todo el espacio de claves.
        """
        try:
            next_cursor, keys = self._client.scan(cursor=cursor, match=pattern, count=count)
        except RedisError as e:
            raise self._fail("scan", e, pattern=pattern, cursor=cursor) from e
        return int(next_cursor), list(keys)

    def pipeline_delete(self, keys: Iterable[str]) -> int:
        """Elimina todas las claves en un único pipeline."""
        keys = list(keys)
        if not keys:
            return 0
        try:
            pipe = self._client.pipeline(transaction=False)
            for key in keys:
                pipe.delete(key)
            results = pipe.execute()
        except RedisError as e:
            raise self._fail("pipeline_delete", e, keys=len(keys)) from e
        return sum(int(result) for result in results)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as e:
            raise self._fail("ping", e) from e


@lru_cache
def get_redis_cache() -> RedisCache:
    """
    Obtiene el cache de Redis (singleton cacheado).

    Returns:
        RedisCache configurado
    """
    settings = get_settings()

    client = Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )
    logger.info("Cliente de Redis inicializado", url=settings.redis_url)

    return RedisCache(client)
