import os
import logging
from dotenv import load_dotenv

# Load environment variables before any other imports
load_dotenv()

from application.config.ai_config import MODEL_FAST, MODEL_PRO  # noqa: E402


PLACEHOLDER_API_KEY = 'sua_api_key_aqui'


def _is_testing():
    return os.getenv('TESTING', '').lower() in ('1', 'true', 'yes')


def validate_environment_variables():
    """Valida as variáveis de ambiente obrigatórias"""
    required_vars = {
        'SECRET_KEY': 'Chave secreta do Flask é obrigatória',
        'DATABASE_URL': 'URL do banco PostgreSQL é obrigatória',
    }
    if not _is_testing():
        required_vars['CENARIO_AI_API_KEY'] = 'Chave do gateway de IA é obrigatória'

    missing_vars = []
    for var, message in required_vars.items():
        if not os.getenv(var):
            missing_vars.append(f"{var}: {message}")

    if missing_vars:
        raise ValueError(f"Variáveis de ambiente faltando:\n" + "\n".join(missing_vars))

    if os.getenv('CENARIO_AI_API_KEY') == PLACEHOLDER_API_KEY:
        raise ValueError("CENARIO_AI_API_KEY configurada com placeholder. Atualize o .env antes de iniciar a aplicação.")

    # Log configuration without sensitive data
    config = get_config_values()
    logging.info(
        f"✅ Configuração validada - DB: {config['db_vendor']}, "
        f"Modelos: {config['model_fast']}/{config['model_pro']}"
    )


def get_config_values():
    """Retorna valores de configuração validados"""
    database_url = os.environ['DATABASE_URL']
    return {
        'db_vendor': 'sqlite' if database_url.startswith('sqlite') else 'postgresql',
        'database_url': database_url,
        'ai_base_url': os.getenv('CENARIO_AI_BASE_URL', 'https://api.openai.com/v1'),
        'model_fast': MODEL_FAST,
        'model_pro': MODEL_PRO,
        'ai_backoff_seconds': float(os.getenv('CENARIO_AI_BACKOFF_SECONDS', '1.0')),
        'rate_limit_per_minute': int(os.getenv('RATE_LIMIT_PER_MINUTE', '30')),
        'log_level': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'log_file': os.getenv('LOG_FILE'),
    }


from flask import Flask, request, g, session
from flask_cors import CORS
from application.config.LimiterConfig import limiter
from domain.interfaces.dataprovider.DatabaseConfig import init_database


def _configure_logging(config):
    # Configurar logging seguro (sem chaves de API)
    handlers = [logging.StreamHandler()]
    if config['log_file']:
        log_dir = os.path.dirname(config['log_file'])
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(config['log_file'], mode='a'))

    logging.basicConfig(
        level=getattr(logging, config['log_level'], logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def create_api(test_config=None):
    """Cria e configura a aplicação Flask"""

    # Validar variáveis de ambiente obrigatórias
    validate_environment_variables()
    config = get_config_values()
    _configure_logging(config)

    # Caminho absoluto da pasta atual
    basedir = os.path.abspath(os.path.dirname(__file__))

    # Inicialização do app Flask
    app = Flask(__name__)
    app.logger.setLevel(logging.INFO)
    app.config['SECRET_KEY'] = os.environ['SECRET_KEY']
    app.config['TESTING'] = _is_testing()
    if test_config:
        app.config.update(test_config)

    # Configurar CORS para permitir requisições do frontend
    CORS(app, origins="*", supports_credentials=True)

    # Configurar banco de dados
    init_database(app, basedir)

    # Inicializar rate limiting
    if app.config.get('TESTING'):
        app.config.setdefault('RATELIMIT_ENABLED', False)
    limiter.init_app(app)

    @limiter.request_filter
    def _skip_health_checks():
        """Health checks never count against the rate limit"""
        return request.method == 'GET' and (request.path or '/') in ('/health', '/api/health', '/api/version')

    # Importar blueprints só depois das extensões serem inicializadas
    from adapter.entrypoint.health.HealthController import health_bp
    from adapter.entrypoint.cenario.CenarioController import cenario_bp

    # Registrar blueprints (rotas)
    app.register_blueprint(health_bp, url_prefix='/api')
    app.register_blueprint(cenario_bp, url_prefix='/api/cenario')

    @app.get("/health")
    def root_health():
        return {"status": "ok"}, 200

    @app.before_request
    def _load_user_from_session():
        """Propaga o user_id da sessão para g.user_id em todas as rotas"""
        uid = session.get('user_id')
        if uid:
            g.user_id = str(uid)

    return app
