from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


# Fields are optional here so that missing values reach the service layer,
# which answers 400 rather than a schema-level 422.

class RegisterUserRequest(BaseModel):
    """Schema for on-chain user registration."""
    uid: Optional[str] = Field(None, description="Identity provider account id")
    fusionPayId: Optional[str] = Field(None, description="Public payment identifier")


class AddFundsRequest(BaseModel):
    """Schema for crediting a deposit to a wallet."""
    uid: Optional[str] = None
    currency: Optional[str] = None
    amount: Optional[Any] = Field(None, description="Smallest currency unit, number or numeric string")
    method: Optional[str] = Field(None, description="Payment method, e.g. Razorpay")
    paymentId: Optional[str] = Field(None, description="Payment gateway reference")


class WalletOut(BaseModel):
    """Wallet view of a user document."""
    uid: str
    fusionPayId: Optional[str] = None
    blockchainAddress: Optional[str] = None
    onChainRegistered: bool = False
    balances: Dict[str, str] = {}
    recentTransactions: List[Dict[str, Any]] = []
    registeredAt: Optional[str] = None
