"""2FA endpoints: secret generation and code verification."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from otpgate.errors import UnauthorizedError
from otpgate.lifecycle import TwoFactorLifecycle
from otpgate.models import Caller, ErrorResponse, SecretResponse, VerifyAction, VerifyRequest, VerifyResponse

router = APIRouter(
    prefix="/functions/v1",
    tags=["2fa"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


async def current_caller(request: Request, authorization: str | None = Header(None)) -> Caller:
    if not authorization:
        raise UnauthorizedError()
    return await request.app.state.gateway.authenticate(authorization)


def get_lifecycle(request: Request) -> TwoFactorLifecycle:
    return request.app.state.lifecycle


@router.post("/generate-2fa-secret", response_model=SecretResponse)
async def generate_2fa_secret(
    caller: Caller = Depends(current_caller),
    lifecycle: TwoFactorLifecycle = Depends(get_lifecycle),
):
    provisioned = await lifecycle.generate_secret(caller.account_id, email=caller.email)
    return SecretResponse(secret=provisioned.secret, otpauth_uri=provisioned.provisioning_uri)


@router.post("/verify-2fa", response_model=VerifyResponse, response_model_exclude_none=True)
async def verify_2fa(
    body: VerifyRequest,
    caller: Caller = Depends(current_caller),
    lifecycle: TwoFactorLifecycle = Depends(get_lifecycle),
):
    outcome = await lifecycle.verify_code(caller.account_id, body.code, body.action)
    if outcome.action is VerifyAction.VERIFY:
        return VerifyResponse(verified=True)
    return VerifyResponse(message=outcome.message)
