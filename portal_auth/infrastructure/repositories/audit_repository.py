# caminho: portal_auth/infrastructure/repositories/audit_repository.py
# Funções:
# - SqlAlchemyAuditLogger: grava AuditEvent em admin_audit_logs
#
# Falha de gravação nunca altera a resposta: rollback + log AUDIT_WRITE_FAILED.

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.infrastructure.db.models import AdminAuditLogModel
from portal_auth.shared.audit import AuditEvent
from portal_auth.shared.logging import log_error


class SqlAlchemyAuditLogger:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, event: AuditEvent) -> None:
        model = AdminAuditLogModel(
            user_id=event.user_id,
            email=event.email,
            action=event.action.value,
            success=event.success,
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            metadata_json=event.metadata or None,
        )
        try:
            self._session.add(model)
            await self._session.commit()
        except Exception as exc:
            await self._safe_rollback()
            log_error(
                'AUDIT_WRITE_FAILED',
                {'action': event.action.value, 'user_id': event.user_id, 'error': type(exc).__name__},
            )

    async def _safe_rollback(self) -> None:
        try:
            await self._session.rollback()
        except Exception as exc:  # pragma: no cover - conexão já perdida
            log_error('AUDIT_ROLLBACK_FAILED', {'error': type(exc).__name__})
