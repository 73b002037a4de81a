# caminho: portal_auth/interfaces/api/routers/health.py
# Funções:
# - GET /health: liveness (rota aberta)

from __future__ import annotations

from fastapi import APIRouter

from portal_auth.application.admins.dto import HealthResponse

router = APIRouter(tags=['health'])


@router.get('/health', response_model=HealthResponse, summary='Liveness')
async def health() -> HealthResponse:
    return HealthResponse()
