from fastapi import APIRouter

from .. import catalog
from ..config import settings

router = APIRouter(prefix="/options", tags=["options"])


@router.get("")
def list_options():
    """Choices and defaults for the options form and upload control."""
    return {
        "materials": list(catalog.MATERIALS),
        "finishes": list(catalog.FINISHES),
        "lead_times": list(catalog.LEAD_TIMES),
        "defaults": {
            "quantity": catalog.DEFAULT_QUANTITY,
            "material": catalog.DEFAULT_MATERIAL,
            "finish": catalog.DEFAULT_FINISH,
            "leadTime": catalog.DEFAULT_LEAD_TIME,
        },
        "accepted_extensions": sorted(f".{ext}" for ext in catalog.ALLOWED_EXTENSIONS),
        "debounce_ms": settings.QUOTE_DEBOUNCE_MS,
    }
