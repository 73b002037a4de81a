# caminho: portal_auth/interfaces/api/middleware.py
# Funções:
# - IpAllowlistMiddleware: bloqueia requisições cujo IP não está na allowlist configurada
#
# Basta um IP candidato (de qualquer cabeçalho de proxy) estar na lista. Isso só é
# seguro atrás de um proxy reverso que sobrescreve esses cabeçalhos.

from __future__ import annotations

from pathlib import Path
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import HTMLResponse, JSONResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from portal_auth.config.settings import Settings
from portal_auth.shared.client_ip import PROXY_IP_HEADERS, resolve_client_ips
from portal_auth.shared.logging import log_warning

TEMPLATE_DIR = Path(__file__).resolve().parents[2] / 'templates'
ACCESS_DENIED_TEMPLATE = 'access_denied.html'
ACCESS_DENIED_TITLE = 'Portal Access Denied'
ACCESS_DENIED_MESSAGE = (
    'This portal is protected and can only be accessed from approved IP addresses. '
    'If you believe this is an error, request access from your security administrator.'
)


class IpAllowlistMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        super().__init__(app)
        self._allowlist = settings.admin_ip_allowlist
        self._debug = settings.allowlist_debug_enabled
        self._platform_header = settings.PLATFORM_CLIENT_IP_HEADER
        self._api_prefix = settings.API_PREFIX
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(['html', 'xml']),
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._allowlist:
            return await call_next(request)

        peer_host = request.client.host if request.client else None
        ips = resolve_client_ips(request.headers, peer_host, self._platform_header)
        if any(ip in self._allowlist for ip in ips):
            return await call_next(request)

        log_warning('ADMIN_IP_NOT_ALLOWED', {'path': request.url.path, 'ips': ips})
        if self._wants_json(request):
            return self._json_response(request, ips)
        return self._html_response(request, ips)

    def _wants_json(self, request: Request) -> bool:
        accepts = request.headers.get('accept', '')
        return request.url.path.startswith(self._api_prefix) or 'application/json' in accepts

    def _debug_headers(self, request: Request) -> dict[str, str | None]:
        names = [self._platform_header.lower(), *PROXY_IP_HEADERS]
        return {name: request.headers.get(name) for name in names}

    def _json_response(self, request: Request, ips: list[str]) -> JSONResponse:
        body: dict[str, object] = {'error': 'Forbidden'}
        if self._debug:
            body['detected_ips'] = ips
            body['headers'] = self._debug_headers(request)
        return JSONResponse(body, status_code=403)

    def _html_response(self, request: Request, ips: list[str]) -> HTMLResponse:
        debug = {'ips': ips, 'headers': self._debug_headers(request)} if self._debug else None
        html = self._env.get_template(ACCESS_DENIED_TEMPLATE).render(
            title=ACCESS_DENIED_TITLE,
            message=ACCESS_DENIED_MESSAGE,
            debug=debug,
        )
        return HTMLResponse(html, status_code=403)
