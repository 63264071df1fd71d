"""
FusionPayment contract client.
Signs contract calls with the system wallet and waits for them to be mined.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from app.core.config import settings
from app.core.exceptions import serialize_error
from app.packages.chain.abi import FUSION_PAYMENT_ABI

logger = logging.getLogger(__name__)


class ChainError(Exception):
    """The chain reported failure: RPC error, revert, failed receipt or timeout."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {"message": message}

    @property
    def transaction_hash(self) -> Optional[str]:
        """Hash of a transaction that reached the network before the failure, if any."""
        return self.details.get("transactionHash")


class ChainConfigurationError(ChainError):
    """Chain settings are missing, so no client can be built."""


@dataclass
class CustodyWallet:
    """A freshly generated key pair held server-side on the user's behalf."""
    address: str
    private_key: str


@dataclass
class PaymentParams:
    """Mirror of the contract's PaymentParams struct. Fee is not part of it."""
    from_fusion_pay_id: str
    to_fusion_pay_id: str
    amount: int
    from_currency: str
    to_currency: str
    fx_rate: int
    fx_route: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.fx_route:
            # the contract rejects an empty route, even for same-currency payments
            self.fx_route = [self.from_currency, self.to_currency]

    def as_contract_tuple(self) -> tuple:
        return (
            self.from_fusion_pay_id,
            self.to_fusion_pay_id,
            int(self.amount),
            self.from_currency,
            self.to_currency,
            int(self.fx_rate),
            list(self.fx_route),
        )


class ChainClient:
    """Client for the FusionPayment smart contract."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        contract_address: str,
        timeout: int = 120,
        w3: Optional[AsyncWeb3] = None
    ):
        if w3 is None and not rpc_url:
            raise ChainConfigurationError("CHAIN_RPC_URL is not configured")
        if not private_key:
            raise ChainConfigurationError("SYSTEM_WALLET_PRIVATE_KEY is not configured")
        if not contract_address:
            raise ChainConfigurationError("FUSIONPAY_CONTRACT_ADDRESS is not configured")

        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.timeout = timeout
        self._account = Account.from_key(private_key)
        self.contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=FUSION_PAYMENT_ABI
        )
        # One signer, one nonce sequence: sends must not interleave
        self._send_lock = asyncio.Lock()

        logger.info(f"Chain client ready for contract {contract_address} via wallet {self._account.address}")

    @classmethod
    def from_settings(cls) -> "ChainClient":
        return cls(
            rpc_url=settings.CHAIN_RPC_URL,
            private_key=settings.SYSTEM_WALLET_PRIVATE_KEY,
            contract_address=settings.FUSIONPAY_CONTRACT_ADDRESS,
            timeout=settings.CHAIN_CALL_TIMEOUT
        )

    @staticmethod
    def create_custody_wallet() -> CustodyWallet:
        """Generate a random key pair for a new user."""
        account = Account.create()
        return CustodyWallet(
            address=account.address,
            private_key=AsyncWeb3.to_hex(account.key)
        )

    async def register_user(self, fusion_pay_id: str, user_address: str) -> str:
        """
        Register a FusionPay ID against a wallet address on-chain.

        Returns:
            Transaction hash as 0x-prefixed hex

        Raises:
            ChainError: If the call fails, reverts or times out
        """
        checksum_address = AsyncWeb3.to_checksum_address(user_address)
        logger.info(f"Registering {fusion_pay_id} with wallet {checksum_address} on-chain")
        tx_hash = await self._transact(
            "registerUser",
            self.contract.functions.registerUser(fusion_pay_id, checksum_address)
        )
        logger.info(f"User {fusion_pay_id} registered on-chain. Tx hash: {tx_hash}")
        return tx_hash

    async def process_payment(self, tx_id: str, params: PaymentParams) -> str:
        """
        Execute a payment on-chain.

        Returns:
            Transaction hash as 0x-prefixed hex

        Raises:
            ChainError: If the call fails, reverts or times out
        """
        logger.info(f"Submitting payment {tx_id} on-chain")
        tx_hash = await self._transact(
            "processPayment",
            self.contract.functions.processPayment(tx_id, params.as_contract_tuple())
        )
        logger.info(f"Payment processed on-chain. TxId: {tx_id}, Tx Hash: {tx_hash}")
        return tx_hash

    async def _transact(self, label: str, contract_function) -> str:
        # Filled in as soon as the signed transaction is accepted by the node
        submitted: Dict[str, str] = {}
        try:
            return await asyncio.wait_for(
                self._sign_and_send(label, contract_function, submitted),
                timeout=self.timeout
            )
        except ChainError:
            raise
        except (asyncio.TimeoutError, TimeExhausted) as e:
            details = serialize_error(e)
            details["code"] = "TIMEOUT"
            if submitted:
                # Sent but not confirmed: it may still be mined
                details.update(submitted)
                logger.error(
                    f"{label} timed out after {self.timeout}s waiting for receipt of "
                    f"{submitted['transactionHash']}, outcome unknown"
                )
            else:
                logger.error(f"{label} timed out after {self.timeout}s")
            raise ChainError(f"{label} timed out after {self.timeout}s", details) from e
        except ContractLogicError as e:
            reason = getattr(e, "message", None) or str(e)
            logger.error(f"{label} reverted: {reason}")
            details = serialize_error(e)
            details["reason"] = reason
            details["code"] = "CALL_EXCEPTION"
            raise ChainError(f"{label} reverted: {reason}", details) from e
        except Exception as e:
            logger.error(f"Unexpected error during {label}: {str(e)}")
            details = serialize_error(e)
            details.update(submitted)
            raise ChainError(f"{label} failed: {str(e)}", details) from e

    async def _sign_and_send(self, label: str, contract_function, submitted: Dict[str, str]) -> str:
        async with self._send_lock:
            nonce = await self.w3.eth.get_transaction_count(self._account.address, "pending")
            tx = await contract_function.build_transaction({
                "from": self._account.address,
                "nonce": nonce
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)

        hex_hash = AsyncWeb3.to_hex(tx_hash)
        submitted["transactionHash"] = hex_hash
        logger.info(f"{label} submitted: {hex_hash}, waiting for receipt")
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        if receipt["status"] != 1:
            raise ChainError(
                f"{label} reverted in block {receipt.get('blockNumber')}",
                {
                    "message": "transaction execution reverted",
                    "code": "CALL_EXCEPTION",
                    "transactionHash": hex_hash,
                    "blockNumber": receipt.get("blockNumber"),
                    "status": receipt["status"]
                }
            )
        return hex_hash
