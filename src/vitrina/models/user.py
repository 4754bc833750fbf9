"""
Modelos de Usuario y relaciones.

Favoritos y recomendaciones vinculan usuarios con propiedades.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Usuario registrado. El login y el hashing viven fuera de este paquete."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID estable del usuario")
    email: str = Field(..., description="Email único")


class Favorite(BaseModel):
    """Propiedad marcada como favorita por un usuario."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str = Field(..., alias="userId", description="FK al User")
    listing_id: str = Field(..., alias="listingId", description="FK al Listing")
    created_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
        alias="createdAt",
    )

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(by_alias=True)


class Recommendation(BaseModel):
    """Propiedad recomendada por un usuario a otro, identificado por email."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    from_user_id: str = Field(..., alias="fromUserId", description="Quien recomienda")
    to_user_id: str = Field(..., alias="toUserId", description="Destinatario")
    to_email: Optional[str] = Field(None, alias="toEmail")
    listing_id: str = Field(..., alias="listingId", description="FK al Listing")
    created_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
        alias="createdAt",
    )

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(by_alias=True)
