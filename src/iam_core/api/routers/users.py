from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, SecretStr, field_validator
from starlette.status import HTTP_201_CREATED, HTTP_403_FORBIDDEN

from iam_core.api.deps import account_service
from iam_core.api.errors import service_http_error
from iam_core.api.schemas import EMAIL_PATTERN, PasswordModel, check_password
from iam_core.auth.deps import require_admins, require_managers, require_super_admin
from iam_core.auth.models import Principal, RoleCode
from iam_core.db.models import Account
from iam_core.services.accounts import AccountService
from iam_core.services.errors import ServiceError

router = APIRouter(prefix="/api/v1/users", tags=["users"])

# Only a SUPER_ADMIN may hand out these codes.
_PRIVILEGED_CODES = frozenset({RoleCode.super_admin.value, RoleCode.admin.value})


class CreateUserRequest(PasswordModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    roles: list[str] = Field(default_factory=list)


class UpdateUserRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    is_active: bool | None = None
    password: SecretStr | None = None
    roles: list[str] | None = None

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: SecretStr | None) -> SecretStr | None:
        return check_password(v)


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None
    is_active: bool
    is_verified: bool
    roles: list[str]

    @classmethod
    def from_account(cls, a: Account) -> UserResponse:
        return cls(
            id=a.id,
            email=a.email,
            first_name=a.first_name,
            last_name=a.last_name,
            phone=a.phone,
            is_active=a.is_active,
            is_verified=a.is_verified,
            roles=[r.code for r in a.roles],
        )


def _check_grantable(principal: Principal, codes: list[str] | None) -> None:
    if not codes or principal.has_role(RoleCode.super_admin):
        return
    if _PRIVILEGED_CODES.intersection(codes):
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Cannot grant privileged roles")


@router.get("", response_model=list[UserResponse], dependencies=[Depends(require_admins)])
async def list_users(accounts: AccountService = Depends(account_service)) -> list[UserResponse]:
    return [UserResponse.from_account(a) for a in await accounts.list_accounts()]


@router.post("", response_model=UserResponse, status_code=HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    principal: Principal = Depends(require_managers),
    accounts: AccountService = Depends(account_service),
) -> UserResponse:
    _check_grantable(principal, body.roles)
    try:
        account = await accounts.create(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            role_codes=body.roles,
        )
    except (ServiceError, ValueError) as e:
        raise service_http_error(e) from e
    return UserResponse.from_account(account)


@router.put("/{id}", response_model=UserResponse)
async def update_user(
    id: uuid.UUID,
    body: UpdateUserRequest,
    principal: Principal = Depends(require_admins),
    accounts: AccountService = Depends(account_service),
) -> UserResponse:
    _check_grantable(principal, body.roles)
    try:
        account = await accounts.update(
            id,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            is_active=body.is_active,
            password=body.password,
            role_codes=body.roles,
        )
    except (ServiceError, ValueError) as e:
        raise service_http_error(e) from e
    return UserResponse.from_account(account)


@router.delete("/{id}", dependencies=[Depends(require_super_admin)])
async def delete_user(
    id: uuid.UUID,
    accounts: AccountService = Depends(account_service),
) -> dict[str, bool]:
    try:
        await accounts.delete(id)
    except ServiceError as e:
        raise service_http_error(e) from e
    return {"success": True}
