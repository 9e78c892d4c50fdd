import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import get_settings


logger = logging.getLogger(__name__)


def require_service_key(x_service_key: Optional[str] = Header(default=None)) -> None:
    expected = get_settings().service_api_key
    if not expected:
        return
    if not x_service_key or not hmac.compare_digest(x_service_key.encode(), expected.encode()):
        logger.warning("Rejected request with missing or invalid service key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service key")
