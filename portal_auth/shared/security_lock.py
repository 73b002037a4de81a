# caminho: portal_auth/shared/security_lock.py
# Funções:
# - LockoutPolicy: regras de bloqueio temporário de conta por falhas de senha
#
# O contador e o lock_until vivem na própria conta; a gravação é feita pelo
# repositório com UPDATE atômico (ver AdminRepository.register_login_failure).

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(slots=True, frozen=True)
class LockoutPolicy:
    max_attempts: int
    lock_duration: timedelta

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError('max_attempts must be >= 1')

    @staticmethod
    def is_locked(lock_until: datetime | None, now: datetime) -> bool:
        return lock_until is not None and lock_until > now

    def should_lock(self, failed_count: int) -> bool:
        return failed_count >= self.max_attempts

    def lock_until_for(self, failed_count: int, now: datetime) -> datetime | None:
        if not self.should_lock(failed_count):
            return None
        return now + self.lock_duration

    @staticmethod
    def retry_after_seconds(lock_until: datetime | None, now: datetime) -> int | None:
        if lock_until is None or lock_until <= now:
            return None
        return max(1, math.ceil((lock_until - now).total_seconds()))
