from typing import Any, Dict, List, Optional
from datetime import datetime


class User:
    """User document: custody wallet, FusionPay ID and per-currency balances."""

    def __init__(
        self,
        uid: str,
        fusion_pay_id: Optional[str] = None,
        blockchain_address: Optional[str] = None,
        blockchain_private_key: Optional[str] = None,
        on_chain_registered: bool = False,
        balances: Optional[Dict[str, str]] = None,
        recent_transactions: Optional[List[Dict[str, Any]]] = None,
        registered_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uid = uid
        self.fusion_pay_id = fusion_pay_id
        self.blockchain_address = blockchain_address
        self.blockchain_private_key = blockchain_private_key
        self.on_chain_registered = on_chain_registered
        self.balances = dict(balances or {})
        self.recent_transactions = list(recent_transactions or [])
        self.registered_at = registered_at
        self.created_at = created_at
        self.updated_at = updated_at

    def balance_of(self, currency: str) -> int:
        """Balance in the smallest unit; an absent currency counts as zero."""
        return int(self.balances.get(currency) or 0)

    def to_public_dict(self) -> Dict[str, Any]:
        """Wallet view for API responses. Never includes the private key."""
        return {
            "uid": self.uid,
            "fusionPayId": self.fusion_pay_id,
            "blockchainAddress": self.blockchain_address,
            "onChainRegistered": self.on_chain_registered,
            "balances": dict(self.balances),
            "recentTransactions": list(self.recent_transactions),
            "registeredAt": self.registered_at.isoformat() if self.registered_at else None
        }

    @classmethod
    def from_record(cls, record) -> "User":
        """Create User instance from database record."""
        return cls(
            uid=record["uid"],
            fusion_pay_id=record.get("fusion_pay_id"),
            blockchain_address=record.get("blockchain_address"),
            blockchain_private_key=record.get("blockchain_private_key"),
            on_chain_registered=record.get("on_chain_registered") or False,
            balances=record.get("balances"),
            recent_transactions=record.get("recent_transactions"),
            registered_at=record.get("registered_at"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at")
        )
