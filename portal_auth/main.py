# caminho: portal_auth/main.py
# Funções:
# - app: instancia FastAPI criada via create_application()

from __future__ import annotations

from portal_auth.interfaces.api.app import create_application

app = create_application()
