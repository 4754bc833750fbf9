"""
Cliente de Supabase.

Una única conexión por proceso, compartida por todos los repositorios.
"""

from functools import lru_cache

import structlog
from supabase import create_client, Client

from vitrina.config import Settings, get_settings
from vitrina.errors import StoreUnavailable

logger = structlog.get_logger()

# Tablas que maneja vitrina
TABLES = frozenset({"listings", "favorites", "recommendations", "users"})


class SupabaseClient:
    """Wrapper del cliente de Supabase restringido a las tablas de vitrina."""

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseClient":
        """
        Crea el cliente a partir de la configuración.

        La service key tiene prioridad: las mutaciones filtran por
        `createdBy` en la propia consulta, no vía RLS.

        Raises:
            StoreUnavailable: sin credenciales o si el cliente no se pudo crear
        """
        if not settings.supabase_url or not settings.supabase_key:
            raise StoreUnavailable(
                "SUPABASE_URL y SUPABASE_KEY son requeridos para acceder al store"
            )

        role = "service" if settings.supabase_service_key else "anon"
        key = settings.supabase_service_key or settings.supabase_key
        try:
            client = create_client(settings.supabase_url, key)
        except Exception as e:
            logger.error("No se pudo crear el cliente de Supabase", error=str(e))
            raise StoreUnavailable(f"Supabase no disponible: {e}") from e

        logger.info("Cliente de Supabase inicializado", url=settings.supabase_url, role=role)
        return cls(client)

    @property
    def client(self) -> Client:
        return self._client

    def table(self, name: str):
        """Query builder de una tabla de vitrina."""
        if name not in TABLES:
            raise ValueError(f"Tabla desconocida: {name}")
        return self._client.table(name)


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """Cliente compartido (singleton cacheado)."""
    return SupabaseClient.from_settings(get_settings())
