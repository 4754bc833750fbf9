"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> vitrina/ -> src/ -> raíz del proyecto
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase
    supabase_url: str = Field(..., description="URL del proyecto Supabase")
    supabase_key: str = Field(..., description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para operaciones admin"
    )

    # Redis
    redis_url: str = Field(
        "redis://localhost:6379/0", description="URL de conexión a Redis"
    )
    redis_socket_timeout: float = Field(
        5.0, gt=0, description="Timeout de socket para Redis (segundos)"
    )

    # Cache
    cache_ttl_seconds: int = Field(
        600, gt=0, description="TTL de las entradas cacheadas (segundos)"
    )
    cache_scan_count: int = Field(
        100, gt=0, description="Tamaño de página para SCAN durante invalidación"
    )

    # Listados
    list_page_limit: int = Field(
        10, gt=0, description="Máximo de propiedades devueltas por consulta"
    )

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Parámetro reservado que identifica al usuario, nunca es un filtro
IDENTITY_PARAM = "userID"

# Catálogo de campos filtrables por tipo
STRING_SET_FIELDS = frozenset({
    "id",
    "propId",
    "title",
    "type",
    "state",
    "city",
    "furnished",
    "listedBy",
    "listingType",
    "createdBy",
})

NUMERIC_FIELDS = frozenset({
    "price",
    "areaSqFt",
    "bedrooms",
    "bathrooms",
    "rating",
})

DATE_FIELDS = frozenset({"availableFrom"})

BOOLEAN_FIELDS = frozenset({"isVerified"})

MULTI_TERM_FIELDS = frozenset({"tags", "amenities"})

# Formato de fecha aceptado en filtros
DATE_FORMAT = "%Y-%m-%d"
