import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import StepUpError
from app.core.limiter import limiter, otp_send_limit
from app.db.session import get_db
from app.models.user import User
from app.schemas.two_factor import (
    BackupCodeVerifyRequest,
    BackupCodesResponse,
    OtpSendResponse,
    OtpVerifyRequest,
    TrustedDeviceOut,
    TwoFactorEnableRequest,
    TwoFactorRequiredResponse,
    TwoFactorStatusResponse,
    VerificationResponse,
)
from app.services import notifications as notification_service
from app.services import two_factor as two_factor_service
from app.services.trusted_devices import device_fingerprint

router = APIRouter(prefix="/2fa", tags=["two-factor"])
logger = logging.getLogger(__name__)


async def _finish_step_up(
    db: AsyncSession,
    user: User,
    client: deps.ClientInfo,
    *,
    remember_device: bool,
) -> str | None:
    device_id = None
    if remember_device:
        device_id = await two_factor_service.add_trusted_device(
            db, user_id=user.id, user_agent=client.user_agent, ip_address=client.ip_address
        )
    try:
        await notification_service.send_login_alert(
            db, user.id, ip_address=client.ip_address, user_agent=client.user_agent
        )
    except StepUpError as exc:
        logger.warning("Login alert not sent", extra={"user_id": str(user.id), "error_code": exc.code})
    return device_id


@router.get("/status", response_model=TwoFactorStatusResponse, summary="Two-factor status for the current user")
async def get_status(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TwoFactorStatusResponse:
    status_ = await two_factor_service.get_two_factor_status(db, current_user.id)
    return TwoFactorStatusResponse.model_validate(status_)


@router.post("/enable", response_model=BackupCodesResponse, summary="Enable two-factor authentication")
async def enable(
    payload: TwoFactorEnableRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> BackupCodesResponse:
    codes = await two_factor_service.enable_two_factor(
        db,
        user_id=current_user.id,
        method=payload.method,
        phone_number=payload.phone_number,
        email=payload.email,
    )
    return BackupCodesResponse(backup_codes=codes)


@router.post("/disable", response_model=TwoFactorStatusResponse, summary="Disable two-factor authentication")
async def disable(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TwoFactorStatusResponse:
    await two_factor_service.disable_two_factor(db, user_id=current_user.id)
    status_ = await two_factor_service.get_two_factor_status(db, current_user.id)
    return TwoFactorStatusResponse.model_validate(status_)


@router.post(
    "/backup-codes/regenerate",
    response_model=BackupCodesResponse,
    summary="Replace all backup codes",
)
async def regenerate_backup_codes(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> BackupCodesResponse:
    codes = await two_factor_service.regenerate_backup_codes(db, user_id=current_user.id)
    return BackupCodesResponse(backup_codes=codes)


@router.get("/devices", response_model=list[TrustedDeviceOut], summary="List trusted devices")
async def list_devices(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[TrustedDeviceOut]:
    devices = await two_factor_service.get_trusted_devices(db, current_user.id)
    return [TrustedDeviceOut.model_validate(device) for device in devices]


@router.delete("/devices/{device_id}", summary="Revoke a trusted device")
async def revoke_device(
    device_id: str,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    removed = await two_factor_service.remove_trusted_device(db, user_id=current_user.id, device_id=device_id)
    return {"removed": removed}


@router.get(
    "/challenge/required",
    response_model=TwoFactorRequiredResponse,
    summary="Whether this login needs a second factor",
)
async def challenge_required(
    user: User = Depends(deps.get_challenge_user),
    client: deps.ClientInfo = Depends(deps.get_client_info),
    db: AsyncSession = Depends(get_db),
) -> TwoFactorRequiredResponse:
    device_id = device_fingerprint(client.user_agent, client.ip_address)
    required = await two_factor_service.is_two_factor_required(db, user_id=user.id, device_id=device_id)
    return TwoFactorRequiredResponse(required=required, device_id=device_id)


@router.post("/challenge/send", response_model=OtpSendResponse, summary="Send a one-time verification code")
@limiter.limit(otp_send_limit)
async def challenge_send(
    request: Request,
    user: User = Depends(deps.get_challenge_user),
    db: AsyncSession = Depends(get_db),
) -> OtpSendResponse:
    client = deps.get_client_info(request)
    dispatch = await two_factor_service.send_otp(
        db, user_id=user.id, ip_address=client.ip_address, user_agent=client.user_agent
    )
    return OtpSendResponse.model_validate(dispatch)


@router.post("/challenge/verify", response_model=VerificationResponse, summary="Verify a one-time code")
async def challenge_verify(
    payload: OtpVerifyRequest,
    user: User = Depends(deps.get_challenge_user),
    client: deps.ClientInfo = Depends(deps.get_client_info),
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    await two_factor_service.verify_otp(db, user_id=user.id, code=payload.code)
    device_id = await _finish_step_up(db, user, client, remember_device=payload.remember_device)
    return VerificationResponse(device_id=device_id)


@router.post("/challenge/verify-backup", response_model=VerificationResponse, summary="Redeem a backup code")
async def challenge_verify_backup(
    payload: BackupCodeVerifyRequest,
    user: User = Depends(deps.get_challenge_user),
    client: deps.ClientInfo = Depends(deps.get_client_info),
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    remaining = await two_factor_service.verify_backup_code(db, user_id=user.id, code=payload.code)
    device_id = await _finish_step_up(db, user, client, remember_device=payload.remember_device)
    return VerificationResponse(device_id=device_id, backup_codes_remaining=remaining)
