"""
Script de administración del cache.

Uso:
    python -m vitrina.scripts.cache_admin invalidate
    python -m vitrina.scripts.cache_admin invalidate --namespace favorites:user:
    python -m vitrina.scripts.cache_admin key --user u123 --filter state=CA
"""

import argparse
import sys

import structlog

from vitrina.cache import get_redis_cache, invalidate_namespace
from vitrina.config import get_settings
from vitrina.errors import VitrinaError
from vitrina.logging_config import configure_logging
from vitrina.query import LISTING_NAMESPACES, encode_cache_key
from vitrina.scripts.query_listings import parse_filter_args

logger = structlog.get_logger()


def run_invalidate(namespaces: list[str]) -> int:
    """Invalida cada namespace. Devuelve el total de claves eliminadas."""
    settings = get_settings()
    cache = get_redis_cache()
    cache.ping()

    total = 0
    for namespace in namespaces:
        total += invalidate_namespace(cache, namespace, settings.cache_scan_count)
    return total


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Administración del cache de vitrina")
    subparsers = parser.add_subparsers(dest="command", required=True)

    invalidate = subparsers.add_parser("invalidate", help="Borra un namespace completo")
    invalidate.add_argument(
        "--namespace",
        action="append",
        default=None,
        help="Prefijo a invalidar (repetible). Default: namespaces de propiedades",
    )

    key = subparsers.add_parser("key", help="Muestra la clave de cache de una consulta")
    key.add_argument("--user", required=True, help="ID del usuario")
    key.add_argument("--filter", action="append", default=[], metavar="NOMBRE=VALOR")

    return parser


def main():
    """Entry point del script."""
    args = build_parser().parse_args()
    configure_logging(get_settings().log_level)

    try:
        if args.command == "key":
            print(encode_cache_key(args.user, parse_filter_args(args.filter)))
            sys.exit(0)

        namespaces = args.namespace or list(LISTING_NAMESPACES)
        deleted = run_invalidate(namespaces)
        logger.info("Invalidación completada", namespaces=namespaces, deleted=deleted)
        sys.exit(0)

    except argparse.ArgumentTypeError as e:
        logger.error("Argumentos inválidos", error=str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Operación interrumpida por usuario")
        sys.exit(130)
    except VitrinaError as e:
        logger.error("Error de cache", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
