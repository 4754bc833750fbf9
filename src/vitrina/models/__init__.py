"""
Modelos de datos del sistema.

- Listing: propiedad publicada
- User, Favorite, Recommendation: usuarios y sus relaciones con propiedades
"""

from vitrina.models.listing import Listing, build_update_patch
from vitrina.models.user import User, Favorite, Recommendation

__all__ = [
    # Propiedades
    "Listing",
    "build_update_patch",
    # Usuarios
    "User",
    "Favorite",
    "Recommendation",
]
