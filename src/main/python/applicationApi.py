"""Ponto de entrada da API do Agente Cenário (Gunicorn: applicationApi:app)."""

import logging
from datetime import datetime

from dotenv import load_dotenv

# Carregar variáveis de ambiente antes de inicializar o app
load_dotenv()

from application.config.FlaskConfig import create_api  # noqa: E402

logger = logging.getLogger(__name__)

# create_api valida o ambiente (inclusive chave de IA placeholder) antes de subir o app
try:
    app = create_api()
except Exception:
    logger.exception("Falha ao criar a aplicação Flask.")
    raise


if __name__ == "__main__":
    logger.info("🚀 Agente Cenário (Framework CRIVO) em http://localhost:5002")
    logger.info("🕒 Iniciado em: %s", datetime.now().strftime('%Y-%m-%d %H:%M:%S'))

    app.run(
        host="0.0.0.0",
        port=5002,
        debug=False,
        use_reloader=False,
    )
