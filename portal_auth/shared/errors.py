# caminho: portal_auth/shared/errors.py
# Funções:
# - AdminApiError e subclasses: taxonomia de erros (400/401/403/404/409/429)
# - register_exception_handlers(): padroniza respostas de erro como {"error": <mensagem>}

from __future__ import annotations

from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal_auth.shared.logging import log_error, log_warning


class AdminApiError(StarletteHTTPException):
    status_code_default: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code=self.status_code_default, detail=message, headers=headers)


class ValidationFailed(AdminApiError):
    status_code_default = HTTPStatus.BAD_REQUEST


class AuthenticationFailed(AdminApiError):
    """Mensagens genéricas de propósito: não revelam se a conta ou a sessão existem."""

    status_code_default = HTTPStatus.UNAUTHORIZED


class AuthorizationFailed(AdminApiError):
    status_code_default = HTTPStatus.FORBIDDEN


class ResourceNotFound(AdminApiError):
    status_code_default = HTTPStatus.NOT_FOUND


class ResourceConflict(AdminApiError):
    status_code_default = HTTPStatus.CONFLICT


class RateLimited(AdminApiError):
    status_code_default = HTTPStatus.TOO_MANY_REQUESTS


class AccountLocked(AdminApiError):
    status_code_default = HTTPStatus.TOO_MANY_REQUESTS

    def __init__(self, message: str, *, retry_after_seconds: int | None = None) -> None:
        headers = {'Retry-After': str(retry_after_seconds)} if retry_after_seconds else None
        super().__init__(message, headers=headers)
        self.retry_after_seconds = retry_after_seconds


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    return JSONResponse({'error': message}, status_code=exc.status_code, headers=getattr(exc, 'headers', None))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log_warning('REQUEST_VALIDATION_FAILED', {'path': request.url.path, 'errors': len(exc.errors())})
    return JSONResponse({'error': 'Invalid request payload'}, status_code=HTTPStatus.BAD_REQUEST)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error('UNHANDLED_EXCEPTION', {'path': request.url.path, 'error': type(exc).__name__})
    return JSONResponse({'error': 'Unexpected server error'}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
