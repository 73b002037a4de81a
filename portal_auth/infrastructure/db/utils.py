# caminho: portal_auth/infrastructure/db/utils.py
# Funções:
# - try_commit(): commit com rollback seguro em falhas do driver
# - utc_now() / as_utc(): datas sempre com fuso UTC (SQLite devolve datas sem fuso)
# - DuplicateRecordError: violação de unicidade traduzida para o domínio

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession


class DuplicateRecordError(Exception):
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def try_commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateRecordError(str(exc.orig)) from exc
    except (DBAPIError, SQLAlchemyError):  # pragma: no cover
        await session.rollback()
        raise
