"""
iam_core.api.routers.auth

Account authentication endpoints.

Responsibilities:
- Register and log in accounts, returning a token pair.
- Exchange refresh tokens for new pairs.
- Log out (audit only) and return the caller's resolved principal.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, SecretStr
from starlette.status import HTTP_201_CREATED

from iam_core.api.deps import account_service, principal_resolver, token_issuer
from iam_core.api.errors import service_http_error
from iam_core.api.schemas import (
    EMAIL_PATTERN,
    LoginResponse,
    PasswordModel,
    PrincipalResponse,
    TokenResponse,
)
from iam_core.audit.records import RequestContext
from iam_core.auth.deps import authenticated, public_route, signed_in, to_http_error
from iam_core.auth.errors import AuthError
from iam_core.auth.models import Principal
from iam_core.auth.resolver import PrincipalResolver
from iam_core.auth.tokens import TokenIssuer
from iam_core.services.accounts import AccountService
from iam_core.services.errors import ServiceError

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class RegisterRequest(PasswordModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=20)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: SecretStr


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


@router.post(
    "/register",
    response_model=LoginResponse,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(public_route)],
)
async def register(
    request: Request,
    body: RegisterRequest,
    accounts: AccountService = Depends(account_service),
) -> LoginResponse:
    try:
        result = await accounts.register(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            ctx=RequestContext.from_request(request),
        )
    except (ServiceError, ValueError) as e:
        raise service_http_error(e) from e
    return LoginResponse(
        principal=PrincipalResponse.from_principal(result.principal),
        tokens=TokenResponse.from_pair(result.tokens),
    )


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(public_route)])
async def login(
    request: Request,
    body: LoginRequest,
    accounts: AccountService = Depends(account_service),
) -> LoginResponse:
    try:
        result = await accounts.login(
            email=body.email,
            password=body.password,
            ctx=RequestContext.from_request(request),
        )
    except AuthError as e:
        raise to_http_error(e) from e
    return LoginResponse(
        principal=PrincipalResponse.from_principal(result.principal),
        tokens=TokenResponse.from_pair(result.tokens),
    )


@router.post("/refresh", response_model=TokenResponse, dependencies=[Depends(public_route)])
async def refresh(
    body: RefreshRequest,
    issuer: TokenIssuer = Depends(token_issuer),
    resolver: PrincipalResolver = Depends(principal_resolver),
) -> TokenResponse:
    try:
        pair = await issuer.refresh(body.refresh_token, load=resolver.load)
    except AuthError as e:
        raise to_http_error(e) from e
    return TokenResponse.from_pair(pair)


@router.post("/logout")
async def logout(
    request: Request,
    principal: Principal = Depends(signed_in),
    accounts: AccountService = Depends(account_service),
) -> dict[str, bool]:
    accounts.logout(principal, RequestContext.from_request(request))
    return {"success": True}


@router.get("/profile", response_model=PrincipalResponse)
async def profile(principal: Principal = Depends(authenticated)) -> PrincipalResponse:
    return PrincipalResponse.from_principal(principal)


# --- Module Notes -----------------------------------------------------------
# Failed logins surface only the generic "Invalid credentials" message; the reason
# is logged server-side.
