"""
Jerarquía de errores del sistema.

- Errores de filtro: recuperables, la cláusula se descarta.
- Errores de autorización y de store: rechazan la operación.
- Errores de cache: nunca rechazan una lectura, se degradan a bypass.
"""


class VitrinaError(Exception):
    """Error base de vitrina."""


class FilterValidationError(VitrinaError, ValueError):
    """Valor de filtro malformado (número, fecha o booleano no parseable)."""

    def __init__(self, field: str, value: str, reason: str = ""):
        self.field = field
        self.value = value
        self.reason = reason
        message = f"Valor inválido para '{field}': {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class NotAuthorized(VitrinaError):
    """Identidad ausente o inválida."""


class StoreUnavailable(VitrinaError):
    """Falló una consulta o mutación contra el store."""


class CacheUnavailable(VitrinaError):
    """Falló una operación contra el cache."""


class ListingNotFound(VitrinaError):
    """La propiedad no existe o no pertenece al usuario."""


class AlreadyFavorite(VitrinaError):
    """La propiedad ya está en favoritos del usuario."""


class FavoriteNotFound(VitrinaError):
    """El favorito a eliminar no existe."""


class RecipientNotFound(VitrinaError):
    """No existe un usuario con el email destinatario."""


class InvalidPayload(VitrinaError, ValueError):
    """Payload de creación o actualización inválido."""
