"""Partners domain - Order acceptance, fulfilment updates and partner removal"""

from .router import router

__all__ = ["router"]
