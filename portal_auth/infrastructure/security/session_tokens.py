# caminho: portal_auth/infrastructure/security/session_tokens.py
# Funções:
# - generate_session_token(): token bearer opaco de alta entropia (entregue uma única vez)
# - hash_session_token(): hash SHA-256 usado como chave de busca; o token nunca é persistido

from __future__ import annotations

from hashlib import sha256
from secrets import token_hex

SESSION_TOKEN_BYTES = 32


def generate_session_token() -> str:
    return token_hex(SESSION_TOKEN_BYTES)


def hash_session_token(token: str) -> str:
    return sha256(token.encode('utf-8')).hexdigest()
