"""Verification command router."""

from fastapi import APIRouter, Depends, Path

from src.api.controller.verification.dto.input_dto import StartVerificationRequestDto, UserCommandRequestDto
from src.api.controller.verification.verification_controller import VerificationController
from src.core.dependencies import get_verification_controller, require_api_key
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.outcome import ConfigurationReport, ResetOutcome, UserStatus

USER_ID_PATTERN = r"^\d{17,19}$"

router = APIRouter(
    prefix="/api/v1/verification",
    tags=["verification"],
    dependencies=[Depends(require_api_key)],
    responses={
        401: {"description": "Invalid API key"},
        422: {"description": "Invalid input"},
        429: {"description": "Too Many Requests"},
        500: {"description": "Internal Server Error"}
    }
)


@router.post("/start")
async def start_verification(
    request: StartVerificationRequestDto,
    controller: VerificationController = Depends(get_verification_controller)
):
    """
    Issue a micro-payment challenge for the primary network.

    Calling again before the transfer is confirmed resumes the same challenge
    amount with the latest wallet address.
    """
    return await controller.start(request)


@router.post("/confirm")
async def confirm_transaction(
    request: UserCommandRequestDto,
    controller: VerificationController = Depends(get_verification_controller)
):
    """Look for the challenge transfer and check holdings on the primary network."""
    return await controller.confirm(request)


@router.post("/networks/{network}")
async def verify_network(
    network: Network,
    request: UserCommandRequestDto,
    controller: VerificationController = Depends(get_verification_controller)
):
    """Check holdings on a secondary network with the wallet verified on the primary network."""
    return await controller.verify_network(network, request)


@router.get("/status/{user_id}", response_model=UserStatus)
async def get_status(
    user_id: str = Path(..., pattern=USER_ID_PATTERN),
    controller: VerificationController = Depends(get_verification_controller)
):
    return await controller.status(user_id)


@router.get("/config", response_model=ConfigurationReport)
async def get_configuration(controller: VerificationController = Depends(get_verification_controller)):
    return controller.configuration()


@router.delete("/{user_id}", response_model=ResetOutcome)
async def reset_verification(
    user_id: str = Path(..., pattern=USER_ID_PATTERN),
    controller: VerificationController = Depends(get_verification_controller)
):
    """Remove stored verifications and the pending challenge, and revoke configured roles."""
    return await controller.reset(user_id)
