"""
iam_core.api.routers.clients

Service-client endpoints.

Responsibilities:
- Public client sign-up and email-or-phone login.
- API key generation (plaintext returned once), deactivation and verification.
- Email verification and staff administration of clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, SecretStr, field_validator
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
)

from iam_core.api.deps import api_key_manager, client_service
from iam_core.api.errors import service_http_error
from iam_core.api.schemas import (
    EMAIL_PATTERN,
    LoginResponse,
    PasswordModel,
    PrincipalResponse,
    TokenResponse,
    check_password,
)
from iam_core.audit.records import RequestContext
from iam_core.auth.api_keys import ApiKeyManager
from iam_core.auth.deps import (
    public_route,
    require_admins,
    require_api_key,
    require_client,
    require_client_or_staff,
    require_managers,
    require_super_admin,
    to_http_error,
)
from iam_core.auth.errors import AuthError
from iam_core.auth.models import Principal
from iam_core.db.models import Client
from iam_core.services.clients import ClientService
from iam_core.services.errors import ServiceError

router = APIRouter(prefix="/api/v1/clients", tags=["clients"])


class CreateClientRequest(PasswordModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    address: str | None = None
    is_active: bool = True


class UpdateClientRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    address: str | None = None
    is_active: bool | None = None
    password: SecretStr | None = None

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: SecretStr | None) -> SecretStr | None:
        return check_password(v)


class ClientLoginRequest(BaseModel):
    identifier: str = Field(min_length=1, max_length=255, description="Email or phone number")
    password: SecretStr


class CreateApiKeyRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    # Staff must name the owning client; clients always get their own key.
    client_id: uuid.UUID | None = None
    expires_at: datetime | None = None


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=6, max_length=6)


class ClientResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None
    address: str | None
    is_active: bool
    is_email_verified: bool

    @classmethod
    def from_client(cls, c: Client) -> ClientResponse:
        return cls(
            id=c.id,
            email=c.email,
            first_name=c.first_name,
            last_name=c.last_name,
            phone=c.phone,
            address=c.address,
            is_active=c.is_active,
            is_email_verified=c.is_verified,
        )


class ApiKeyCreatedResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    key: str
    name: str
    last_four: str
    is_active: bool
    expires_at: datetime | None
    created_at: datetime
    message: str = "Store this key securely; it will not be shown again."


def _own_or_staff(principal: Principal, client_id: uuid.UUID) -> None:
    # Clients may act only on their own record; the 404 hides other clients' existence.
    if principal.is_client and principal.id != client_id:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Client not found")


@router.post(
    "",
    response_model=ClientResponse,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(public_route)],
)
async def create_client(
    body: CreateClientRequest,
    clients: ClientService = Depends(client_service),
) -> ClientResponse:
    try:
        client = await clients.create(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            address=body.address,
            is_active=body.is_active,
        )
    except ServiceError as e:
        raise service_http_error(e) from e
    return ClientResponse.from_client(client)


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(public_route)])
async def login(
    request: Request,
    body: ClientLoginRequest,
    clients: ClientService = Depends(client_service),
) -> LoginResponse:
    try:
        result = await clients.login(
            identifier=body.identifier,
            password=body.password,
            ctx=RequestContext.from_request(request),
        )
    except AuthError as e:
        raise to_http_error(e) from e
    return LoginResponse(
        principal=PrincipalResponse.from_principal(result.principal),
        tokens=TokenResponse.from_pair(result.tokens),
    )


@router.get("", response_model=list[ClientResponse], dependencies=[Depends(require_managers)])
async def list_clients(clients: ClientService = Depends(client_service)) -> list[ClientResponse]:
    return [ClientResponse.from_client(c) for c in await clients.list_clients()]


@router.get("/profile", response_model=ClientResponse)
async def profile(
    principal: Principal = Depends(require_client),
    clients: ClientService = Depends(client_service),
) -> ClientResponse:
    try:
        return ClientResponse.from_client(await clients.get(principal.id))
    except ServiceError as e:
        raise service_http_error(e) from e


@router.get("/verify-api-key", response_model=PrincipalResponse)
async def verify_api_key(principal: Principal = Depends(require_api_key)) -> PrincipalResponse:
    return PrincipalResponse.from_principal(principal)


@router.post("/api-keys", response_model=ApiKeyCreatedResponse, status_code=HTTP_201_CREATED)
async def create_api_key(
    body: CreateApiKeyRequest,
    principal: Principal = Depends(require_client_or_staff),
    api_keys: ApiKeyManager = Depends(api_key_manager),
) -> ApiKeyCreatedResponse:
    if principal.is_client:
        if body.client_id is not None and body.client_id != principal.id:
            raise HTTPException(
                status_code=HTTP_403_FORBIDDEN, detail="Clients may only create their own API keys"
            )
        owner_id = principal.id
    elif body.client_id is None:
        raise HTTPException(status_code=422, detail="client_id is required")
    else:
        owner_id = body.client_id

    try:
        created = await api_keys.generate(owner_id, body.name, expires_at=body.expires_at)
    except LookupError as e:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Client not found") from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return ApiKeyCreatedResponse(
        id=created.id,
        client_id=created.client_id,
        key=created.key,
        name=created.name,
        last_four=created.last_four,
        is_active=created.is_active,
        expires_at=created.expires_at,
        created_at=created.created_at,
    )


@router.delete("/api-keys/{key_id}")
async def deactivate_api_key(
    key_id: uuid.UUID,
    principal: Principal = Depends(require_client_or_staff),
    api_keys: ApiKeyManager = Depends(api_key_manager),
) -> dict[str, bool]:
    owner = principal.id if principal.is_client else None
    if not await api_keys.deactivate(key_id, owner_client_id=owner):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="API key not found")
    return {"success": True}


@router.post("/{id}/verification-code")
async def issue_verification_code(
    id: uuid.UUID,
    principal: Principal = Depends(require_client_or_staff),
    clients: ClientService = Depends(client_service),
) -> dict[str, str]:
    _own_or_staff(principal, id)
    try:
        code = await clients.issue_verification_code(id)
    except ServiceError as e:
        raise service_http_error(e) from e
    # No mail transport here; the code is returned to the caller.
    return {"token": code}


@router.post("/{id}/verify-email")
async def verify_email(
    id: uuid.UUID,
    body: VerifyEmailRequest,
    principal: Principal = Depends(require_client_or_staff),
    clients: ClientService = Depends(client_service),
) -> dict[str, bool]:
    _own_or_staff(principal, id)
    try:
        ok = await clients.verify_email(id, body.token)
    except ServiceError as e:
        raise service_http_error(e) from e
    if not ok:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token"
        )
    return {"success": True}


@router.put("/{id}", response_model=ClientResponse, dependencies=[Depends(require_admins)])
async def update_client(
    id: uuid.UUID,
    body: UpdateClientRequest,
    clients: ClientService = Depends(client_service),
) -> ClientResponse:
    try:
        client = await clients.update(
            id,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            address=body.address,
            is_active=body.is_active,
            password=body.password,
        )
    except ServiceError as e:
        raise service_http_error(e) from e
    return ClientResponse.from_client(client)


@router.delete("/{id}", dependencies=[Depends(require_super_admin)])
async def delete_client(
    id: uuid.UUID,
    clients: ClientService = Depends(client_service),
) -> dict[str, bool]:
    try:
        await clients.delete(id)
    except ServiceError as e:
        raise service_http_error(e) from e
    return {"success": True}
