import logging
import traceback
from flask import Blueprint, request, jsonify, send_file, g, current_app
from flask_cors import cross_origin

from domain.interfaces.dataprovider.DatabaseConfig import db
from domain.repositories.ConversationRepository import (
    MessageRepo,
    ProjectRepo,
    SqlConversationStore,
    UserProfileRepo,
)
from domain.services.docx_exporter import CenarioReportExporter, report_filename
from domain.usecase.cenario.conversation_orchestrator import ConversationOrchestrator, message_to_dict
from domain.usecase.cenario.project_locks import ConversationBusyError, project_locks
from application.ai.gateway import AIGatewayError, get_ai_gateway

logger = logging.getLogger(__name__)

cenario_bp = Blueprint('cenario', __name__)

DOCX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'

# Module-level variable for lazy initialization
_gateway = None


def get_current_user_id():
    """Get current user ID from flask.g or request headers, fallback to 'anonymous'"""
    # Check if user_id is in flask.g (set by auth middleware)
    if hasattr(g, 'user_id') and g.user_id:
        return str(g.user_id)

    # Check X-User-Id header
    user_id = request.headers.get('X-User-Id')
    if user_id:
        return str(user_id)

    # Fallback to anonymous for development
    return 'anonymous'


def get_gateway():
    """Gateway de IA: o configurado no app (testes) ou o criado a partir do ambiente"""
    configured = current_app.config.get('CENARIO_AI_GATEWAY')
    if configured is not None:
        return configured

    global _gateway
    if _gateway is None:
        _gateway = get_ai_gateway()
    return _gateway


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


def _ai_error_response(e: AIGatewayError):
    logger.error(f"[CENARIO] Erro de IA ({type(e).__name__}): {e}")
    return _error(e.user_message, e.status_code)


def _load_owned_project(project_id):
    """Returns (project, None) or (None, error_response)"""
    project = ProjectRepo.get(project_id)
    if not project:
        return None, _error('Projeto não encontrado', 404)
    if not ProjectRepo.assert_owner(project_id, get_current_user_id()):
        return None, _error('Acesso negado a este projeto', 403)
    return project, None


def _build_orchestrator(project):
    messages = [MessageRepo.to_domain(m) for m in MessageRepo.list_for_project(project.id)]
    return ConversationOrchestrator(
        project_id=project.id,
        profile=UserProfileRepo.get(project.user_id),
        demanda_title=project.title,
        gateway=get_gateway(),
        store=SqlConversationStore(),
        messages=messages,
        state=ProjectRepo.load_state(project),
        synthesis=ProjectRepo.load_synthesis(project),
    )


def _orchestrator_for_turn(project):
    """Chamado com o lock do projeto: relê a linha para ver o estado do turno anterior"""
    db.session.refresh(project)
    return _build_orchestrator(project)


@cenario_bp.route('/new', methods=['POST'])
@cross_origin()
def create_project():
    """Cria uma nova demanda e envia a pergunta 1"""
    try:
        data = request.get_json(silent=True) or {}
        title = (data.get('title') or '').strip()
        if not title:
            return _error('Título da demanda é obrigatório', 400)

        user_id = get_current_user_id()
        project = ProjectRepo.create(user_id=user_id, title=title)
        db.session.commit()

        orchestrator = _build_orchestrator(project)
        first_question = orchestrator.start()

        logger.info(f"[CENARIO] Projeto {project.id} criado para usuário: {user_id}")

        return jsonify({
            'success': True,
            'project': project.to_dict(),
            'messages': [message_to_dict(first_question)] if first_question else [],
            'state': orchestrator.state.to_snapshot(),
        }), 201

    except Exception as e:
        db.session.rollback()
        logger.error(f"[CENARIO] Erro ao criar projeto: {e}")
        traceback.print_exc()
        return _error(f'Erro ao criar projeto: {str(e)}', 500)


@cenario_bp.route('/open/<project_id>', methods=['GET'])
@cross_origin()
def open_project(project_id):
    """Retorna o projeto, o snapshot do estado e todas as mensagens"""
    try:
        project, error = _load_owned_project(project_id)
        if error:
            return error

        messages = MessageRepo.list_for_project(project.id)
        messages_data = [{
            'id': msg.id,
            'role': msg.role,
            'content': msg.content,
            'stage': msg.stage,
            'payload': msg.payload,
            'created_at': msg.created_at.isoformat()
        } for msg in messages]

        logger.info(f"[CENARIO] Projeto {project_id} aberto com {len(messages_data)} mensagens")

        return jsonify({
            'success': True,
            'project': project.to_dict(),
            'state': ProjectRepo.load_state(project).to_snapshot(),
            'messages': messages_data,
        }), 200

    except Exception as e:
        logger.error(f"[CENARIO] Erro ao abrir projeto {project_id}: {e}")
        traceback.print_exc()
        return _error(f'Erro ao abrir projeto: {str(e)}', 500)


@cenario_bp.route('/<project_id>/message', methods=['POST'])
@cross_origin()
def send_message(project_id):
    """Processa uma mensagem do usuário (um turno por vez por projeto)"""
    try:
        data = request.get_json(silent=True) or {}
        message = (data.get('message') or '').strip()
        if not message:
            return _error('Mensagem é obrigatória', 400)

        project, error = _load_owned_project(project_id)
        if error:
            return error

        with project_locks.hold(project.id):
            orchestrator = _orchestrator_for_turn(project)
            result = orchestrator.handle_user_message(message)

        return jsonify({'success': True, **result.to_dict()}), 200

    except ConversationBusyError as e:
        return _error(e.user_message, 409)
    except AIGatewayError as e:
        db.session.rollback()
        return _ai_error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[CENARIO] Erro ao processar mensagem do projeto {project_id}: {e}")
        traceback.print_exc()
        return _error(f'Erro ao processar mensagem: {str(e)}', 500)


@cenario_bp.route('/<project_id>/finalize', methods=['POST'])
@cross_origin()
def finalize_project(project_id):
    """Finaliza a coleta explicitamente (ou repete a síntese após falha)"""
    try:
        project, error = _load_owned_project(project_id)
        if error:
            return error

        with project_locks.hold(project.id):
            orchestrator = _orchestrator_for_turn(project)
            result = orchestrator.finalize_collection()

        return jsonify({'success': True, **result.to_dict()}), 200

    except ConversationBusyError as e:
        return _error(e.user_message, 409)
    except AIGatewayError as e:
        db.session.rollback()
        return _ai_error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[CENARIO] Erro ao finalizar projeto {project_id}: {e}")
        traceback.print_exc()
        return _error(f'Erro ao finalizar coleta: {str(e)}', 500)


@cenario_bp.route('/<project_id>/status', methods=['GET'])
@cross_origin()
def get_status(project_id):
    """Status da coleta (widget do frontend) e última avaliação de completude"""
    try:
        project, error = _load_owned_project(project_id)
        if error:
            return error

        state = ProjectRepo.load_state(project)
        return jsonify({
            'success': True,
            'collection_status': state.to_snapshot(),
            'completeness': state.completeness.to_dict() if state.completeness else None,
            'current_enfoque': project.current_enfoque,
            'coleta_completa': project.coleta_completa,
            'completude_score': project.completude_score,
            'busy': project_locks.is_busy(project.id),
        }), 200

    except Exception as e:
        logger.error(f"[CENARIO] Erro ao consultar status do projeto {project_id}: {e}")
        return _error(f'Erro ao consultar status: {str(e)}', 500)


@cenario_bp.route('/<project_id>/synthesis', methods=['GET'])
@cross_origin()
def get_synthesis(project_id):
    try:
        project, error = _load_owned_project(project_id)
        if error:
            return error

        synthesis = ProjectRepo.load_synthesis(project)
        if synthesis is None:
            return _error('Síntese ainda não gerada', 404)

        return jsonify({'success': True, 'synthesis': synthesis.to_dict()}), 200

    except Exception as e:
        logger.error(f"[CENARIO] Erro ao consultar síntese do projeto {project_id}: {e}")
        return _error(f'Erro ao consultar síntese: {str(e)}', 500)


@cenario_bp.route('/<project_id>/report', methods=['GET'])
@cross_origin()
def download_report(project_id):
    """Gera e baixa o Relatório de Cenário (.docx)"""
    try:
        project, error = _load_owned_project(project_id)
        if error:
            return error

        synthesis = ProjectRepo.load_synthesis(project)
        if synthesis is None:
            return _error('Conclua a síntese antes de gerar o relatório', 409)

        buffer = CenarioReportExporter().export(synthesis, project.title)

        # Retornar arquivo para download
        return send_file(
            buffer,
            as_attachment=True,
            download_name=report_filename(project.id),
            mimetype=DOCX_MIMETYPE
        )

    except Exception as e:
        logger.error(f"[DOCX] Erro ao gerar relatório do projeto {project_id}: {e}")
        traceback.print_exc()
        return _error(f'Erro ao gerar relatório: {str(e)}', 500)
