# caminho: portal_auth/application/admins/dto.py
# Funções:
# - DTOs Pydantic para entrada/saída dos casos de uso de autenticação e contas admin
#
# Entradas de login/2FA usam campos opcionais: a ausência é tratada pelo serviço
# com a mensagem específica (ex.: 'Email and password are required').

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from portal_auth.config.constants import (
    EMAIL_LENGTH_MAX,
    NAME_LENGTH_MAX,
    PASSWORD_LENGTH_MAX,
)
from portal_auth.domain.admins.enums import AdminRole


class AdminCredentialsInput(BaseModel):
    model_config = ConfigDict(extra='ignore')

    email: Optional[str] = Field(default=None, max_length=EMAIL_LENGTH_MAX)
    password: Optional[str] = Field(default=None, max_length=PASSWORD_LENGTH_MAX)


class AdminLoginRequest(AdminCredentialsInput):
    pass


class AdminBootstrapRequest(AdminCredentialsInput):
    name: Optional[str] = Field(default=None, max_length=NAME_LENGTH_MAX)


class AdminCreateRequest(AdminCredentialsInput):
    name: Optional[str] = Field(default=None, max_length=NAME_LENGTH_MAX)
    role: Optional[str] = Field(default=None, max_length=32)


class AdminUpdateRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    name: Optional[str] = Field(default=None, max_length=NAME_LENGTH_MAX)
    role: Optional[str] = Field(default=None, max_length=32)
    is_active: Optional[bool] = None


class AdminTwoFactorRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    code: Optional[str] = Field(default=None, max_length=32)


class AdminUserOut(BaseModel):
    """Resumo público da conta: sem hash de senha, segredo TOTP ou estado de falhas."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    role: AdminRole
    is_active: bool
    totp_enabled: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AdminUserEnvelope(BaseModel):
    user: AdminUserOut


class AdminUserListResponse(BaseModel):
    users: list[AdminUserOut]


class AdminLoginResponse(BaseModel):
    status: Literal['2fa_setup', '2fa_required']
    session_token: str
    session_expires_at: datetime
    user: AdminUserOut
    otpauth_url: Optional[str] = None
    secret: Optional[str] = None


class AdminAuthenticatedResponse(BaseModel):
    status: Literal['authenticated'] = 'authenticated'
    session_token: str
    session_expires_at: datetime
    user: AdminUserOut


class AdminMeResponse(BaseModel):
    user: AdminUserOut
    session_expires_at: datetime


class HealthResponse(BaseModel):
    ok: bool = True
