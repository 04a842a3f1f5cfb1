"""Access-code gate.

Endpoints:
    POST /api/validate - Check the shared access code
"""
import hmac
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vault.config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


class ValidateRequest(BaseModel):
    """Request body for access-code validation."""
    code: str = ""


@router.post("/validate")
async def validate_access_code(request: ValidateRequest) -> JSONResponse:
    """Compare the submitted code with the configured access code.

    Returns:
        200 {"success": true} on a match, otherwise
        401 {"success": false, "message": "Invalid access code."}
    """
    expected = get_config().secrets.access_code
    if hmac.compare_digest(request.code.encode("utf-8"), expected.encode("utf-8")):
        return JSONResponse({"success": True})

    logger.info("Rejected access code attempt")
    return JSONResponse(
        {"success": False, "message": "Invalid access code."},
        status_code=401,
    )
