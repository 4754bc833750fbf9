"""
Script para consultar propiedades con los mismos filtros que la API.

Uso:
    python -m vitrina.scripts.query_listings --user u123
    python -m vitrina.scripts.query_listings --user u123 --filter state=CA,NY --filter "price[gte]=100000"
    python -m vitrina.scripts.query_listings --user u123 --filter tags=pool,garden --explain
"""

import argparse
import json
import sys

import structlog

from vitrina.config import get_settings
from vitrina.errors import VitrinaError
from vitrina.listings import ListingService
from vitrina.logging_config import configure_logging
from vitrina.query import compile_filters

logger = structlog.get_logger()


def parse_filter_args(pairs: list[str]) -> dict[str, list[str]]:
    """Convierte `nombre=valor` repetidos en el formato de una query string."""
    filters: dict[str, list[str]] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(
                f"Filtro inválido '{pair}', se esperaba nombre=valor"
            )
        filters.setdefault(name, []).append(value)
    return filters


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Consulta propiedades cacheadas")
    parser.add_argument("--user", required=True, help="ID del usuario que consulta")
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar="NOMBRE=VALOR",
        help="Filtro en formato query string (repetible)",
    )
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Solo muestra el predicado compilado, sin consultar",
    )
    return parser


def main():
    """Entry point del script."""
    args = build_parser().parse_args()
    configure_logging(get_settings().log_level)

    try:
        filters = parse_filter_args(args.filter)
    except argparse.ArgumentTypeError as e:
        logger.error("Argumentos inválidos", error=str(e))
        sys.exit(2)

    if args.explain:
        print(json.dumps(compile_filters(filters).as_dict(), indent=2, default=str))
        sys.exit(0)

    try:
        result = ListingService().fetch_list(args.user, filters)
        print(json.dumps(result.data(), indent=2, ensure_ascii=False))
        logger.info(
            "Consulta completada",
            key=result.key,
            from_cache=result.from_cache,
        )
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Consulta interrumpida por usuario")
        sys.exit(130)
    except VitrinaError as e:
        logger.error("Error en consulta", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
