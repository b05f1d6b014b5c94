"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
Money and quantities are Decimal and serialize as strings in JSON, so no
precision is lost on the way out.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class BatchResponse(BaseResponseSchema):
            id: UUID
            batch_number: str
            production_order_id: Optional[UUID] = None
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Business rules (positive quantities, known ids) are checked by the
    services so they surface as ValidationError, not as schema errors.
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """Base class for update/patch schemas. All fields optional."""
    model_config = ConfigDict(
        extra='ignore',
    )
