from fastapi import APIRouter, Depends, status
import logging

from app.core.exceptions import APIException, serialize_error
from app.core.responses import success_response, error_response
from app.dependencies import get_chain_client, get_user_repository
from app.packages.chain.client import ChainClient, ChainError
from app.users.repository import UserRepository
from app.users.schemas import RegisterUserRequest, AddFundsRequest, WalletOut
from app.users import service as user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.post("/register-user", status_code=status.HTTP_201_CREATED)
async def register_user(
    request: RegisterUserRequest,
    users: UserRepository = Depends(get_user_repository),
    chain: ChainClient = Depends(get_chain_client)
):
    """
    Register the caller's custody wallet on-chain and store it on their user document.
    """
    logger.info("[register-user] Received POST request")
    try:
        result = await user_service.register_user(
            users=users,
            chain=chain,
            uid=request.uid,
            fusion_pay_id=request.fusionPayId
        )
    except APIException:
        raise
    except ChainError as e:
        logger.error(f"[register-user] Blockchain registration failed: {str(e)}")
        return error_response(
            "Blockchain registration failed",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=e.details
        )
    except Exception as e:
        logger.error(f"[register-user] Critical error: {str(e)}", exc_info=True)
        return error_response(
            "Internal server error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=str(e) or serialize_error(e)
        )

    if result.already_registered:
        return success_response(
            "User is already registered and verified on-chain.",
            status.HTTP_200_OK,
            blockchainAddress=result.blockchain_address,
            fusionPayId=result.fusion_pay_id,
            alreadyRegistered=True
        )

    return success_response(
        "User registered successfully on-chain.",
        status.HTTP_201_CREATED,
        blockchainAddress=result.blockchain_address,
        transactionHash=result.transaction_hash
    )


@router.get("/register-user")
async def register_user_info():
    """Informational endpoint, no side effects."""
    return {"message": "This is the user registration endpoint. Use POST to register."}


@router.get("/wallet/{uid}", response_model=WalletOut)
async def get_wallet(uid: str, users: UserRepository = Depends(get_user_repository)):
    """Get a user's wallet: address, FusionPay ID and balances."""
    user = await user_service.get_wallet(users, uid)
    return user.to_public_dict()


@router.post("/wallet/add-funds", response_model=WalletOut)
async def add_funds(
    request: AddFundsRequest,
    users: UserRepository = Depends(get_user_repository)
):
    """Credit a deposit to the user's balance in one currency."""
    user = await user_service.add_funds(
        users=users,
        uid=request.uid,
        currency=request.currency,
        amount=request.amount,
        method=request.method,
        payment_id=request.paymentId
    )
    return user.to_public_dict()
