from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import get_db


logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Optional[uuid.UUID]:
    """
    Acting user, as forwarded by the gateway in X-User-Id.

    Authentication happens upstream; the id is only stamped on created_by,
    collected_by and stock movements. Requests without it act anonymously.
    """
    if not x_user_id:
        return None
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        logger.warning(f"Invalid X-User-Id header: {x_user_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id must be a UUID",
        )


DB = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[Optional[uuid.UUID], Depends(get_current_user_id)]
