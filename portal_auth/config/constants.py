# caminho: portal_auth/config/constants.py
# Funções:
# - Constantes de autenticação compartilhadas entre rotas e casos de uso

# Rotas que não exigem sessão ativa (relativas ao API_PREFIX)
OPEN_PATHS = frozenset({
    '/health',
    '/admin/login',
    '/admin/bootstrap',
    '/admin/2fa/verify',
})

# Cabeçalho de autenticação
BEARER_PREFIX = 'Bearer '

# Limites de campos
EMAIL_LENGTH_MAX = 254
NAME_LENGTH_MAX = 120
PASSWORD_LENGTH_MAX = 128
TOTP_CODE_LENGTH = 6

# Tamanho máximo armazenado de IP/User-Agent
IP_ADDRESS_LENGTH_MAX = 64
USER_AGENT_LENGTH_MAX = 512
