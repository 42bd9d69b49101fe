"""API routers."""

from formflow.routers.forms import router as forms_router
from formflow.routers.forms_public import router as forms_public_router

__all__ = [
    "forms_router",
    "forms_public_router",
]
