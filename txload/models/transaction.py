"""Pydantic models for transaction API request/response validation"""
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TransactionRequest(BaseModel):
    """Body sent to POST /transactions and PUT /transactions/{id}"""
    amount: Decimal = Field(..., description="Transaction amount")
    currency: str = Field(..., description="ISO currency code")
    type: str = Field(..., description="Transaction type, e.g. PAYMENT")
    status: str = Field(..., description="Lifecycle status, e.g. PENDING")
    description: Optional[str] = Field(default=None, description="Free text")

    def to_json(self) -> Dict[str, Any]:
        """JSON-ready dict; amount is sent as a number"""
        body = self.model_dump()
        body["amount"] = float(self.amount)
        return body


class TransactionResponse(BaseModel):
    """Transaction as returned by the API; unknown fields are ignored"""
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None


class TransactionPage(BaseModel):
    """Response of GET /transactions?page=&size="""
    model_config = ConfigDict(extra="ignore")

    # Required key, any value (null included)
    content: Any
    total_elements: Optional[int] = Field(default=None, alias="totalElements")
    total_pages: Optional[int] = Field(default=None, alias="totalPages")
    number: Optional[int] = None
    size: Optional[int] = None


class ErrorDetail(BaseModel):
    """Error body returned by the API on 4xx/5xx responses"""
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    path: Optional[str] = None
    timestamp: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
