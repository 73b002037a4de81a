# caminho: portal_auth/infrastructure/security/totp.py
# Funções:
# - TotpVerifier: geração de segredo, URI de provisionamento e verificação de códigos TOTP
#
# RFC 6238: códigos de 6 dígitos, passo de 30 segundos, HMAC-SHA1, segredo Base32.
# Segredo e código nunca são registrados em log ou auditoria.

from __future__ import annotations

import binascii
from datetime import datetime

import pyotp

from portal_auth.config.constants import TOTP_CODE_LENGTH


def normalize_totp_code(code: str) -> str:
    return ''.join(str(code).split())


class TotpVerifier:
    def __init__(self, issuer: str, valid_window: int = 1) -> None:
        self._issuer = issuer
        self._valid_window = max(0, int(valid_window))

    @staticmethod
    def generate_secret() -> str:
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account_name: str) -> str:
        return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=self._issuer)

    def check(self, code: str, secret: str, *, for_time: datetime | None = None) -> bool:
        """Aceita o passo atual e `valid_window` passos antes/depois (deriva de relógio)."""
        if not secret or not code:
            return False

        normalized = normalize_totp_code(code)
        if len(normalized) != TOTP_CODE_LENGTH or not normalized.isdigit():
            return False

        try:
            totp = pyotp.TOTP(secret)
            if for_time is None:
                return totp.verify(normalized, valid_window=self._valid_window)
            return totp.verify(normalized, for_time=for_time, valid_window=self._valid_window)
        except (binascii.Error, ValueError):  # segredo malformado
            return False
