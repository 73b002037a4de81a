# caminho: portal_auth/shared/client_ip.py
# Funções:
# - normalize_ip(): remove prefixo IPv4-mapeado (::ffff:) e espaços
# - resolve_client_ips(): lista ordenada e sem duplicatas dos IPs candidatos da requisição
# - ClientInfo / client_info_from_request(): IP best-effort + User-Agent para auditoria

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from starlette.requests import HTTPConnection

from portal_auth.config.constants import IP_ADDRESS_LENGTH_MAX, USER_AGENT_LENGTH_MAX

# Ordem de precedência: o primeiro IP encontrado é a chave do rate limit
PROXY_IP_HEADERS: tuple[str, ...] = (
    'x-forwarded-for',
    'x-real-ip',
    'cf-connecting-ip',
    'true-client-ip',
)

_IPV4_MAPPED_PREFIX = '::ffff:'


def normalize_ip(value: str) -> str:
    ip = value.strip()
    if ip.lower().startswith(_IPV4_MAPPED_PREFIX):
        ip = ip[len(_IPV4_MAPPED_PREFIX):]
    return ip.strip()


def _split_header(value: str | None) -> list[str]:
    if not value:
        return []
    return [normalize_ip(item) for item in value.split(',')]


def resolve_client_ips(
    headers: Mapping[str, str],
    peer_host: str | None,
    platform_header: str | None = None,
) -> list[str]:
    header_names = list(PROXY_IP_HEADERS)
    if platform_header:
        header_names.append(platform_header.lower())

    candidates: list[str] = []
    for name in header_names:
        candidates.extend(_split_header(headers.get(name)))
    if peer_host:
        candidates.append(normalize_ip(peer_host))

    seen: set[str] = set()
    ordered: list[str] = []
    for ip in candidates:
        if ip and ip not in seen:
            seen.add(ip)
            ordered.append(ip)
    return ordered


@dataclass(slots=True, frozen=True)
class ClientInfo:
    ip: str | None
    user_agent: str | None
    candidate_ips: tuple[str, ...] = field(default_factory=tuple)


def client_info_from_request(connection: HTTPConnection, platform_header: str | None = None) -> ClientInfo:
    peer_host = connection.client.host if connection.client else None
    ips = resolve_client_ips(connection.headers, peer_host, platform_header)
    user_agent = connection.headers.get('user-agent') or None
    return ClientInfo(
        ip=ips[0][:IP_ADDRESS_LENGTH_MAX] if ips else None,
        user_agent=user_agent[:USER_AGENT_LENGTH_MAX] if user_agent else None,
        candidate_ips=tuple(ips),
    )
