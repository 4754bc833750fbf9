"""
Traducción de CompiledPredicate a filtros de PostgREST.

Cada cláusula se aplica sobre el query builder de supabase-py; todas las
condiciones encadenadas se combinan con AND del lado del servidor.
"""

from datetime import date

from vitrina.query.filters import (
    AnyContains,
    Bounds,
    CompiledPredicate,
    Equals,
    InSet,
    Operator,
)

# Operador del compilador -> método del query builder
_BUILDER_METHODS = {
    Operator.EQ: "eq",
    Operator.NE: "neq",
    Operator.GT: "gt",
    Operator.GTE: "gte",
    Operator.LT: "lt",
    Operator.LTE: "lte",
}


def _quote(value: str) -> str:
    # Comillas dobles para que '.', ',' y paréntesis no rompan el filtro or=()
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _ilike_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"*{escaped}*"


def _bound_value(value):
    if isinstance(value, date):
        return value.isoformat()
    return value


def contains_any_filter(clause: AnyContains) -> str:
    """Filtro `or` de PostgREST: algún término contenido en el campo."""
    return ",".join(
        f"{clause.field}.ilike.{_quote(_ilike_pattern(term))}"
        for term in clause.terms
    )


def apply_predicate(query, predicate: CompiledPredicate):
    """
    Aplica un predicado sobre un query builder de Supabase.

    Args:
        query: Builder devuelto por `.select(...)`
        predicate: Predicado compilado

    Returns:
        El builder con los filtros encadenados
    """
    for clause in predicate.clauses:
        if isinstance(clause, InSet):
            values = list(clause.values)
            if clause.negate:
                query = query.not_.in_(clause.field, values)
            else:
                query = query.in_(clause.field, values)
        elif isinstance(clause, Bounds):
            for op, value in clause.bounds:
                method = getattr(query, _BUILDER_METHODS[op])
                query = method(clause.field, _bound_value(value))
        elif isinstance(clause, Equals):
            query = query.eq(clause.field, "true" if clause.value else "false")
        elif isinstance(clause, AnyContains):
            query = query.or_(contains_any_filter(clause))
        else:
            raise TypeError(f"Cláusula no soportada: {clause!r}")
    return query
