"""
Modelo de Propiedad (Listing).

Los atributos son snake_case en Python y camelCase en el store, que es
también el nombre que usan los filtros de la query string.
"""

import uuid
from datetime import date, datetime
from typing import Annotated, Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from vitrina.errors import InvalidPayload

logger = structlog.get_logger()


class Listing(BaseModel):
    """Propiedad publicada por un usuario."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    # Identificadores
    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, description="ID de la propiedad"
    )
    prop_id: Optional[str] = Field(
        None, alias="propId", description="ID público, igual a `id` al crearse"
    )

    # Contenido
    title: str = Field(..., min_length=1, description="Título del anuncio")
    type: str = Field("", description="Tipo: Apartment, Villa, Bungalow...")
    price: float = Field(0, ge=0, description="Precio")

    # Ubicación
    state: str = Field("", description="Estado/Provincia")
    city: str = Field("", description="Ciudad")

    # Características físicas
    area_sq_ft: int = Field(0, alias="areaSqFt", ge=0, description="Superficie en sq ft")
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    amenities: str = Field("", description="Amenities separados por '|' o ','")
    furnished: str = Field("", description="Furnished, Semi, Unfurnished")
    available_from: date = Field(
        default_factory=date.today,
        alias="availableFrom",
        description="Fecha de disponibilidad",
    )

    # Publicación
    listed_by: str = Field("", alias="listedBy", description="Owner, Agent, Builder")
    tags: str = Field("", description="Tags libres")
    color_theme: str = Field("", alias="colorTheme")
    rating: float = Field(0, ge=0, le=5)
    is_verified: bool = Field(False, alias="isVerified")
    listing_type: str = Field("", alias="listingType", description="rent o sale")

    # Metadatos
    created_by: Optional[str] = Field(
        None, alias="createdBy", description="Usuario que publicó la propiedad"
    )
    created_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
        alias="createdAt",
    )

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        data = self.model_dump(by_alias=True)
        data["availableFrom"] = self.available_from.isoformat()
        if not data.get("propId"):
            data["propId"] = self.id
        return data


# Campos del payload que nunca se aceptan en una actualización
IMMUTABLE_FIELDS = frozenset({"_id", "id", "propId", "createdBy", "createdAt"})

# Campos mutables y su tipo esperado
MUTABLE_FIELDS: dict[str, str] = {
    "title": "string",
    "type": "string",
    "price": "number",
    "state": "string",
    "city": "string",
    "areaSqFt": "number",
    "bedrooms": "number",
    "bathrooms": "number",
    "amenities": "string",
    "furnished": "string",
    "availableFrom": "date",
    "listedBy": "string",
    "tags": "string",
    "colorTheme": "string",
    "rating": "number",
    "isVerified": "bool",
    "listingType": "string",
}


def _build_field_adapters() -> dict[str, TypeAdapter]:
    """Validadores por campo con las restricciones declaradas en Listing."""
    adapters = {}
    for name, field in Listing.model_fields.items():
        key = field.alias or name
        if MUTABLE_FIELDS.get(key) in ("string", "number"):
            if field.metadata:
                annotation = Annotated[(field.annotation, *field.metadata)]
            else:
                annotation = field.annotation
            adapters[key] = TypeAdapter(annotation)
    return adapters


_FIELD_ADAPTERS = _build_field_adapters()


def _parse_datetime_value(field: str, value: str) -> str:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidPayload(
            f"'{field}' debe ser RFC3339 o YYYY-MM-DD, se recibió {value!r}"
        ) from e
    if len(value) == 10:
        return parsed.date().isoformat()
    return parsed.isoformat()


def _coerce(field: str, kind: str, value: Any) -> Any:
    if value is None:
        return None
    if kind == "string":
        if isinstance(value, str):
            return value
    elif kind == "number":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    elif kind == "bool":
        if isinstance(value, bool):
            return value
    elif kind == "date":
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, str):
            return _parse_datetime_value(field, value)
    raise InvalidPayload(
        f"'{field}' debe ser de tipo {kind}, se recibió {type(value).__name__}"
    )


def _validate(field: str, value: Any) -> Any:
    adapter = _FIELD_ADAPTERS.get(field)
    if adapter is None or value is None:
        return value
    try:
        return adapter.validate_python(value)
    except ValidationError as e:
        message = e.errors()[0]["msg"]
        raise InvalidPayload(f"Valor inválido para '{field}': {message}") from e


def build_update_patch(raw: Mapping[str, Any]) -> dict:
    """
    Construye el patch de actualización a partir de un payload arbitrario.

    Las claves inmutables o desconocidas se descartan; los valores de tipo
    incorrecto o fuera de las restricciones de Listing rechazan el payload.

    Raises:
        InvalidPayload: si algún valor no corresponde al tipo del campo
    """
    patch: dict = {}
    for field, value in raw.items():
        if field in IMMUTABLE_FIELDS:
            logger.info("Campo inmutable ignorado en actualización", field=field)
            continue
        kind = MUTABLE_FIELDS.get(field)
        if kind is None:
            logger.info("Campo desconocido ignorado en actualización", field=field)
            continue
        patch[field] = _validate(field, _coerce(field, kind, value))
    return patch
