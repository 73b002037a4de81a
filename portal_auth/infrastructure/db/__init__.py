# caminho: portal_auth/infrastructure/db/__init__.py
# Funções:
# - expõe Base para migrations

from __future__ import annotations

from portal_auth.infrastructure.db.base import Base
from portal_auth.infrastructure.db import models  # noqa: F401

__all__ = ['Base']
