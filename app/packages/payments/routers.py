from fastapi import APIRouter, Depends
import logging

from app.core.responses import success_response, error_response
from app.dependencies import get_chain_client, get_payment_repository
from app.packages.chain.client import ChainClient
from app.packages.payments.repository import PaymentRepository
from app.packages.payments.schemas import ProcessPaymentRequest, TransactionOut
from app.packages.payments import service as payment_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/process-payment")
async def process_payment(
    request: ProcessPaymentRequest,
    payments: PaymentRepository = Depends(get_payment_repository),
    chain: ChainClient = Depends(get_chain_client)
):
    """
    Record a payment, execute it on-chain and settle both balances.

    Every response after validation carries ``txId`` so the caller can look
    the attempt up later, whatever the outcome.
    """
    outcome = await payment_service.process_payment(
        payments=payments,
        chain=chain,
        payload=request.model_dump()
    )

    if outcome.succeeded:
        extra = {"replayed": True} if outcome.replayed else {}
        return success_response(
            "Payment processed successfully",
            outcome.http_status,
            txId=outcome.tx_id,
            transactionHash=outcome.transaction_hash,
            **extra
        )

    extra = {"transactionHash": outcome.transaction_hash} if outcome.transaction_hash else {}
    return error_response(
        outcome.error,
        outcome.http_status,
        details=outcome.details,
        txId=outcome.tx_id,
        **extra
    )


@router.get("/process-payment")
async def process_payment_info():
    """Informational endpoint, no side effects."""
    return {"message": "API endpoint for processing payments. Use POST."}


@router.get("/transactions/{tx_id}", response_model=TransactionOut)
async def get_transaction(
    tx_id: str,
    payments: PaymentRepository = Depends(get_payment_repository)
):
    """Look up the status of a payment attempt."""
    txn = await payment_service.get_transaction(payments, tx_id)
    return txn.to_public_dict()
