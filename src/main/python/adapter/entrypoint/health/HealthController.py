import os
from datetime import datetime
from flask import Blueprint, jsonify
from flask_cors import cross_origin
from domain.interfaces.dataprovider.DatabaseConfig import db

health_bp = Blueprint('health', __name__)

SERVICE_NAME = 'Agente Cenário - Framework CRIVO'
SERVICE_VERSION = '1.0.0'


def _database_type():
    url = os.getenv('DATABASE_URL', '')
    return 'SQLite' if url.startswith('sqlite') else 'PostgreSQL'


@health_bp.route('/health', methods=['GET'])
@cross_origin()
def health_check():
    """Endpoint de verificação de saúde da aplicação"""
    try:
        # Verificar configurações essenciais
        ai_configured = bool(os.getenv('CENARIO_AI_API_KEY'))
        db.session.execute(db.text('SELECT 1'))

        return jsonify({
            'status': 'healthy',
            'service': SERVICE_NAME,
            'version': SERVICE_VERSION,
            'ai_configured': ai_configured,
            'database_type': _database_type(),
            'features': {
                'standard_questions': True,
                'adaptive_questions': True,
                'completeness_monitor': True,
                'synthesis': True,
                'word_export': True
            },
            'timestamp': datetime.now().isoformat()
        })
    except Exception as e:
        return jsonify({
            'status': 'error',
            'error': str(e),
            'timestamp': datetime.now().isoformat()
        }), 500


@health_bp.route('/version', methods=['GET'])
@cross_origin()
def get_version():
    """Retorna informações de versão"""
    return jsonify({
        'version': SERVICE_VERSION,
        'service': SERVICE_NAME,
        'features': [
            '10 perguntas padrão personalizadas pelo perfil',
            'Até 10 perguntas adaptativas geradas por IA',
            'Monitor de completude das informações essenciais',
            'Síntese estruturada do cenário',
            'Exportação do Relatório de Cenário para Word'
        ]
    })
