"""
Invalidación de cache.

Ante cualquier mutación se borra el namespace completo afectado (SCAN por
patrón + DELETE en pipeline) en lugar de rastrear qué listados dependen de
qué registro: las combinaciones de filtros no están acotadas.

Las invalidaciones corren en segundo plano. Si fallan a mitad de camino se
registra el error y las entradas que quedaron vencen por TTL.
"""

import queue
import threading
from typing import Any, Callable, Iterable, Optional

import structlog

from vitrina.cache.redis_client import RedisCache
from vitrina.errors import CacheUnavailable
from vitrina.query.cache_keys import (
    FAVORITES_PREFIX,
    RECOMMENDATIONS_PREFIX,
    LISTING_NAMESPACES,
    favorites_key,
    recommendations_key,
)

logger = structlog.get_logger()

DEFAULT_SCAN_COUNT = 100


def invalidate_namespace(
    cache: RedisCache,
    prefix: str,
    scan_count: int = DEFAULT_SCAN_COUNT,
) -> int:
    """
    Elimina todas las claves que empiezan con `prefix`.

    Recorre el espacio de claves con SCAN hasta que el cursor vuelve a 0,
    acumulando coincidencias, y luego las borra en un único pipeline.

    Returns:
        Cantidad de claves eliminadas (0 si Redis falló)
    """
    pattern = f"{prefix}*"
    matched: list = []
    cursor = 0

    try:
        while True:
            cursor, keys = cache.scan(cursor, pattern, scan_count)
            matched.extend(keys)
            if cursor == 0:
                break
    except CacheUnavailable as e:
        logger.error(
            "Invalidación abortada durante SCAN",
            pattern=pattern,
            scanned=len(matched),
            error=str(e),
        )
        return 0

    if not matched:
        logger.info("Sin claves para invalidar", pattern=pattern)
        return 0

    # SCAN puede devolver la misma clave más de una vez
    unique_keys = list(dict.fromkeys(matched))

    try:
        deleted = cache.pipeline_delete(unique_keys)
    except CacheUnavailable as e:
        logger.error(
            "Invalidación abortada durante DELETE",
            pattern=pattern,
            keys=len(unique_keys),
            error=str(e),
        )
        return 0

    logger.info("Cache invalidado", pattern=pattern, deleted=deleted)
    return deleted


def invalidate_keys(cache: RedisCache, keys: Iterable[str]) -> int:
    """Elimina claves exactas. Los errores se registran, no se propagan."""
    keys = list(dict.fromkeys(keys))
    if not keys:
        return 0
    try:
        deleted = cache.delete(*keys)
    except CacheUnavailable as e:
        logger.error("No se pudieron invalidar claves", keys=keys, error=str(e))
        return 0
    logger.info("Claves invalidadas", keys=keys, deleted=deleted)
    return deleted


class BackgroundQueue:
    """
    Cola FIFO sin límite atendida por un único thread daemon.

    `submit` nunca bloquea. Las tareas que fallan se registran y se
    descartan; no hay reintentos.
    """

    _STOP = object()

    def __init__(self, name: str = "vitrina-invalidation"):
        self.name = name
        self._queue: queue.Queue = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()

    def _ensure_worker(self) -> None:
        with self._start_lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run, name=self.name, daemon=True
                )
                self._worker.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                fn, args, kwargs = item
                try:
                    fn(*args, **kwargs)
                except Exception:
                    logger.exception(
                        "Tarea en segundo plano falló",
                        task=getattr(fn, "__name__", repr(fn)),
                    )
            finally:
                self._queue.task_done()

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> None:
        """Encola una tarea sin esperar su ejecución."""
        self._ensure_worker()
        self._queue.put((fn, args, kwargs))

    def join(self) -> None:
        """Espera a que se procesen todas las tareas encoladas."""
        if self._worker is None:
            return
        self._queue.join()

    def shutdown(self) -> None:
        """Procesa lo pendiente y detiene el worker."""
        if self._worker is None or not self._worker.is_alive():
            return
        self._queue.put(self._STOP)
        self._worker.join()
        self._worker = None


class CacheInvalidator:
    """
    Invalidaciones por tipo de mutación, despachadas en segundo plano.

    - Propiedades nuevas: namespaces de listados y detalles.
    - Propiedades editadas: además, favoritos y recomendaciones de todos
      los usuarios, que guardan copias de la propiedad.
    - Favoritos: clave exacta del usuario + namespaces de propiedades
      (cambia `isFavorite` en los listados).
    - Recomendaciones: clave exacta de cada destinatario.
    """

    def __init__(
        self,
        cache: RedisCache,
        background: Optional[BackgroundQueue] = None,
        scan_count: int = DEFAULT_SCAN_COUNT,
    ):
        self.cache = cache
        self.background = background or BackgroundQueue()
        self.scan_count = scan_count

    def _clear_listing_namespaces(self) -> int:
        return sum(
            invalidate_namespace(self.cache, prefix, self.scan_count)
            for prefix in LISTING_NAMESPACES
        )

    def _clear_listing_views(self) -> int:
        deleted = self._clear_listing_namespaces()
        for prefix in (FAVORITES_PREFIX, RECOMMENDATIONS_PREFIX):
            deleted += invalidate_namespace(self.cache, prefix, self.scan_count)
        return deleted

    def _clear_favorites(self, user_ids: list[str]) -> None:
        invalidate_keys(self.cache, [favorites_key(uid) for uid in user_ids])
        self._clear_listing_namespaces()

    def _clear_recommendations(self, user_ids: list[str]) -> None:
        invalidate_keys(self.cache, [recommendations_key(uid) for uid in user_ids])

    def listings_changed(self) -> None:
        self.background.submit(self._clear_listing_namespaces)

    def listing_updated(self) -> None:
        self.background.submit(self._clear_listing_views)

    def favorites_changed(self, *user_ids: str) -> None:
        self.background.submit(self._clear_favorites, list(user_ids))

    def recommendations_changed(self, *user_ids: str) -> None:
        if user_ids:
            self.background.submit(self._clear_recommendations, list(user_ids))

    def listing_removed(
        self,
        favorite_user_ids: Iterable[str],
        recommendation_user_ids: Iterable[str],
    ) -> None:
        """Invalida todo lo que podía mostrar una propiedad eliminada."""
        favorite_user_ids = list(favorite_user_ids)
        recommendation_user_ids = list(recommendation_user_ids)

        def _clear_all() -> None:
            invalidate_keys(
                self.cache,
                [favorites_key(uid) for uid in favorite_user_ids]
                + [recommendations_key(uid) for uid in recommendation_user_ids],
            )
            self._clear_listing_namespaces()

        self.background.submit(_clear_all)

    def wait(self) -> None:
        """Bloquea hasta que terminen las invalidaciones pendientes."""
        self.background.join()
