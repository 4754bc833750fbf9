"""
Compilador de filtros.

Traduce los parámetros de una query string (`price[gte]=100000`,
`state=CA,NY`, `tags=pool,garden`) a un predicado estructurado e
independiente del backend. El predicado es una conjunción de cláusulas:

- InSet:        campo incluido (o excluido) en una lista de valores
- Bounds:       rango numérico o de fecha, todas las cotas de un campo juntas
- Equals:       igualdad exacta (booleanos)
- AnyContains:  algún término contenido en el texto, sin distinguir mayúsculas

Los parámetros inválidos nunca rechazan la consulta: se descartan y se
registra el motivo en el log.
"""

import math
import operator
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import structlog

from vitrina.config import (
    BOOLEAN_FIELDS,
    DATE_FIELDS,
    DATE_FORMAT,
    IDENTITY_PARAM,
    MULTI_TERM_FIELDS,
    NUMERIC_FIELDS,
    STRING_SET_FIELDS,
)
from vitrina.errors import FilterValidationError

logger = structlog.get_logger()

RawFilters = Mapping[str, Union[str, Sequence[str], None]]


class Operator(str, Enum):
    """Operadores relacionales aceptados como sufijo `campo[op]`."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class FieldKind(str, Enum):
    """Tipo de un campo filtrable."""

    STRING_SET = "string-set"
    NUMERIC = "numeric"
    DATE = "date"
    BOOLEAN = "boolean"
    MULTI_TERM = "multi-term-text"


OPERATORS: dict[str, Operator] = {op.value: op for op in Operator}

_OPERATOR_ORDER = {op: index for index, op in enumerate(Operator)}

_COMPARATORS = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.GT: operator.gt,
    Operator.GTE: operator.ge,
    Operator.LT: operator.lt,
    Operator.LTE: operator.le,
}


def _build_field_kinds() -> dict[str, FieldKind]:
    kinds: dict[str, FieldKind] = {}
    for fields, kind in (
        (STRING_SET_FIELDS, FieldKind.STRING_SET),
        (NUMERIC_FIELDS, FieldKind.NUMERIC),
        (DATE_FIELDS, FieldKind.DATE),
        (BOOLEAN_FIELDS, FieldKind.BOOLEAN),
        (MULTI_TERM_FIELDS, FieldKind.MULTI_TERM),
    ):
        for field in fields:
            kinds[field] = kind
    return kinds


FIELD_KINDS = _build_field_kinds()

_PARAM_RE = re.compile(r"^(?P<field>[^\[\]]+)(?:\[(?P<op>[^\[\]]*)\])?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# Cláusulas
# ---------------------------------------------------------------------------


def _render(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class InSet:
    """El campo vale alguno de `values` (o ninguno, si `negate`)."""

    field: str
    values: tuple[str, ...]
    negate: bool = False

    def as_dict(self) -> dict:
        return {self.field: {"nin" if self.negate else "in": list(self.values)}}

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = record.get(self.field)
        inside = value is not None and str(value) in self.values
        return inside != self.negate


@dataclass(frozen=True)
class Bounds:
    """Cotas independientes sobre un campo numérico o de fecha."""

    field: str
    bounds: tuple[tuple[Operator, Any], ...]

    def get(self, op: Operator) -> Any:
        for bound_op, value in self.bounds:
            if bound_op is op:
                return value
        return None

    def as_dict(self) -> dict:
        return {self.field: {op.value: _render(value) for op, value in self.bounds}}

    def matches(self, record: Mapping[str, Any]) -> bool:
        raw = record.get(self.field)
        for op, bound in self.bounds:
            if isinstance(bound, date):
                value = _as_date(raw)
            else:
                value = _as_number(raw)
            if value is None:
                if op is Operator.NE:
                    continue
                return False
            if not _COMPARATORS[op](value, bound):
                return False
        return True


@dataclass(frozen=True)
class Equals:
    """Igualdad exacta sobre un campo booleano."""

    field: str
    value: bool

    def as_dict(self) -> dict:
        return {self.field: {"eq": self.value}}

    def matches(self, record: Mapping[str, Any]) -> bool:
        return record.get(self.field) is self.value


@dataclass(frozen=True)
class AnyContains:
    """El texto del campo contiene alguno de los términos (case-insensitive)."""

    field: str
    terms: tuple[str, ...]

    def as_dict(self) -> dict:
        return {"or": [{self.field: {"icontains": term}} for term in self.terms]}

    def matches(self, record: Mapping[str, Any]) -> bool:
        raw = record.get(self.field)
        if raw is None:
            return False
        if isinstance(raw, (list, tuple)):
            text = ",".join(str(item) for item in raw)
        else:
            text = str(raw)
        text = text.lower()
        return any(term.lower() in text for term in self.terms)


Clause = Union[InSet, Bounds, Equals, AnyContains]


@dataclass(frozen=True)
class CompiledPredicate:
    """Conjunción (AND) de cláusulas. Vacío significa "todo"."""

    clauses: tuple[Clause, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    @property
    def fields(self) -> list[str]:
        return [clause.field for clause in self.clauses]

    def as_dict(self) -> dict:
        """Representación anidada, útil para logs y depuración."""
        if self.is_empty:
            return {}
        return {"and": [clause.as_dict() for clause in self.clauses]}

    def matches(self, record: Mapping[str, Any]) -> bool:
        """Evalúa el predicado contra un registro en memoria."""
        return all(clause.matches(record) for clause in self.clauses)


# ---------------------------------------------------------------------------
# Parseo de valores
# ---------------------------------------------------------------------------


def parse_number(field: str, value: str) -> Union[int, float]:
    """Parsea un número. Los enteros se devuelven como int."""
    try:
        number = float(value)
    except ValueError as e:
        raise FilterValidationError(field, value, "no es numérico") from e
    if not math.isfinite(number):
        raise FilterValidationError(field, value, "no es finito")
    if number.is_integer():
        return int(number)
    return number


def parse_date(field: str, value: str) -> date:
    """Parsea una fecha calendario YYYY-MM-DD, con ceros a la izquierda."""
    if not _DATE_RE.match(value):
        raise FilterValidationError(field, value, "se esperaba YYYY-MM-DD")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as e:
        raise FilterValidationError(field, value, "se esperaba YYYY-MM-DD") from e


def parse_bool(field: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in ("1", "t", "true"):
        return True
    if lowered in ("0", "f", "false"):
        return False
    raise FilterValidationError(field, value, "no es booleano")


def parse_param_name(raw_name: str) -> Optional[tuple[str, Optional[str]]]:
    """
    Separa `campo[op]` en (campo, op).

    Returns:
        (campo, token de operador o None), o None si el nombre está mal formado
    """
    match = _PARAM_RE.match(raw_name)
    if not match:
        return None
    return match.group("field"), match.group("op")


def _as_values(raw: Union[str, Sequence[str], None]) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    return [str(item) for item in raw]


def _split_terms(values: Iterable[str]) -> tuple[str, ...]:
    terms: list[str] = []
    for value in values:
        for term in value.split(","):
            term = term.strip()
            if term and term not in terms:
                terms.append(term)
    return tuple(terms)


# ---------------------------------------------------------------------------
# Compilación
# ---------------------------------------------------------------------------


def compile_filters(raw: RawFilters) -> CompiledPredicate:
    """
    Compila los parámetros de una request a un CompiledPredicate.

    Args:
        raw: Mapeo nombre de parámetro -> valor o lista de valores

    Returns:
        Predicado compilado (vacío si ninguna cláusula sobrevivió)
    """
    clauses: list[Clause] = []
    ranges: dict[str, dict[Operator, Any]] = {}

    for raw_name in sorted(raw):
        values = [v.strip() for v in _as_values(raw[raw_name]) if v and v.strip()]
        if not values:
            continue

        parsed = parse_param_name(raw_name)
        if parsed is None:
            logger.info("Parámetro de filtro mal formado", param=raw_name)
            continue
        field, token = parsed

        if field == IDENTITY_PARAM:
            continue

        if token is None:
            op = Operator.EQ
        else:
            op = OPERATORS.get(token)
            if op is None:
                logger.warning(
                    "Operador desconocido en filtro", param=raw_name, operator=token
                )
                continue

        kind = FIELD_KINDS.get(field)
        if kind is None:
            logger.info("Parámetro de filtro no reconocido", param=raw_name)
            continue

        if kind is FieldKind.MULTI_TERM:
            if op is not Operator.EQ:
                _log_degraded(field, kind, op)
            terms = _split_terms(values)
            if terms:
                clauses.append(AnyContains(field, terms))

        elif kind is FieldKind.STRING_SET:
            terms = _split_terms(values)
            if not terms:
                continue
            if op is Operator.NE:
                clauses.append(InSet(field, terms, negate=True))
            else:
                if op is not Operator.EQ:
                    _log_degraded(field, kind, op)
                clauses.append(InSet(field, terms))

        elif kind is FieldKind.BOOLEAN:
            if op is not Operator.EQ:
                _log_degraded(field, kind, op)
            flag = _first_parsed(field, op, values, parse_bool)
            if flag is not None and op is Operator.NE:
                logger.warning(
                    "Filtro booleano con ne: se aplica igualdad, sentido invertido",
                    field=field,
                    requested=f"!= {flag}",
                    applied=f"== {flag}",
                )
            if flag is not None:
                clauses.append(Equals(field, flag))

        else:
            parser = parse_number if kind is FieldKind.NUMERIC else parse_date
            bound = _first_parsed(field, op, values, parser)
            if bound is None:
                continue
            field_bounds = ranges.setdefault(field, {})
            if op in field_bounds:
                logger.info(
                    "Cota repetida en filtro, se usa la última",
                    field=field,
                    operator=op.value,
                )
            field_bounds[op] = bound

    for field, field_bounds in ranges.items():
        ordered = tuple(sorted(field_bounds.items(), key=lambda item: _OPERATOR_ORDER[item[0]]))
        clauses.append(Bounds(field, ordered))

    clauses.sort(key=lambda clause: clause.field)
    return CompiledPredicate(tuple(clauses))


def _first_parsed(field: str, op: Operator, values: list[str], parser) -> Any:
    for value in values:
        try:
            return parser(field, value)
        except FilterValidationError as e:
            logger.warning(
                "Valor de filtro inválido, se descarta",
                field=field,
                operator=op.value,
                value=value,
                error=str(e),
            )
    return None


def _log_degraded(field: str, kind: FieldKind, op: Operator) -> None:
    logger.info(
        "Operador no soportado para el campo, se usa el default",
        field=field,
        kind=kind.value,
        operator=op.value,
    )
