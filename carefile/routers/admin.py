import hmac
import logging

from fastapi import APIRouter, Header

from carefile import config
from carefile.database import get_db
from carefile.errors import UnauthorizedError
from carefile.models.admin import CleanDbResponse
from carefile.services import records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _check_secret(authorization: str | None) -> None:
    secret = config.ADMIN_SECRET_KEY
    if not secret:
        logger.error("ADMIN_SECRET_KEY is not set; refusing admin request")
        raise UnauthorizedError("Unauthorized")
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise UnauthorizedError("Unauthorized")


@router.post("/clean-db", response_model=CleanDbResponse)
async def clean_db(authorization: str | None = Header(None)):
    """Delete every patient, case, document, note and user, and reset patient codes."""
    _check_secret(authorization)

    db = await get_db()
    counts = await records.clean_database(db)
    return CleanDbResponse(message="Database cleaned", deleted=counts)
