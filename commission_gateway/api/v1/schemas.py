"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field


class CommissionRequest(BaseModel):
    """Request body for POST /v1/commission"""

    bin: str = Field(..., pattern=r"^[0-9]{6,16}$", description="Card BIN, 6-16 digits")
    amount: float = Field(..., ge=0, allow_inf_nan=False, description="Transaction amount")
    currency: str = Field(..., pattern=r"^[A-Za-z]{3}$", description="3-letter currency code")


class CommissionResponse(BaseModel):
    """Response for POST /v1/commission"""

    commission: float
    currency: str
