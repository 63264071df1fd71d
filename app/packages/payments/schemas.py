from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


# ============= Process Payment =============
class ProcessPaymentRequest(BaseModel):
    """
    Schema for a payment request.

    Every field is optional at the schema level; presence is checked by the
    service so a missing field answers 400. Numeric fields accept a JSON
    number or a numeric string and are read as integers in the smallest unit.
    """
    senderUid: Optional[Any] = None
    senderFusionPayId: Optional[Any] = None
    recipientFusionPayId: Optional[Any] = None
    amountToSend: Optional[Any] = Field(None, description="Smallest unit, e.g. cents")
    currencyFrom: Optional[Any] = None
    currencyTo: Optional[Any] = None
    exchangeRate: Optional[Any] = Field(None, description="Rate scaled by 10000, e.g. 1.08 -> 10800")
    feeAmount: Optional[Any] = Field(None, description="Smallest unit")
    idempotencyKey: Optional[Any] = Field(None, description="Caller token that makes retries safe")


# ============= Transaction Lookup =============
class TransactionOut(BaseModel):
    """Schema for a stored payment attempt."""
    txId: str
    senderUid: Optional[str] = None
    senderFusionPayId: Optional[str] = None
    recipientFusionPayId: Optional[str] = None
    amountToSend: Optional[str] = None
    currencyFrom: Optional[str] = None
    currencyTo: Optional[str] = None
    exchangeRate: Optional[str] = None
    feeAmount: Optional[str] = None
    status: str
    transactionHash: Optional[str] = None
    onChainError: Optional[Dict[str, Any]] = None
    internalError: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
