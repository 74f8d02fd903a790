"""Repositories for Project and ProjectMessage CRUD operations."""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import func
from domain.dto.ConversationModels import Project, ProjectMessage
from domain.dto.UserDto import User
from domain.interfaces.dataprovider.DatabaseConfig import db
from domain.usecase.cenario.state_machine import ConversationState
from domain.usecase.cenario.types import Message, SynthesisData


class ProjectRepo:
    """Repository for Project CRUD operations."""

    @staticmethod
    def create(user_id: str, title: str) -> Project:
        """Create a new project in the cenario enfoque."""
        project = Project(
            user_id=user_id,
            title=title,
            current_enfoque="cenario",
            collection_status=ConversationState().to_snapshot(),
        )
        db.session.add(project)
        db.session.flush()
        return project

    @staticmethod
    def get(project_id: str) -> Optional[Project]:
        """Get project by ID."""
        return db.session.get(Project, project_id)

    @staticmethod
    def assert_owner(project_id: str, user_id: str) -> bool:
        """
        Check if the given user_id owns the project.
        Users can only access their own demandas.
        """
        project = db.session.get(Project, project_id)
        if not project or str(project.user_id) != str(user_id):
            return False
        return True

    @staticmethod
    def save_state(project_id: str, state: ConversationState, synthesis: Optional[SynthesisData] = None) -> Optional[Project]:
        """Persist the conversation snapshot and, once present, the synthesis."""
        project = db.session.get(Project, project_id)
        if not project:
            return None

        project.collection_status = state.to_snapshot()
        project.informacoes_essenciais = dict(state.essential_info)
        if state.completeness is not None:
            project.completude_score = state.completeness.score
            project.coleta_completa = state.completeness.is_complete

        if synthesis is not None:
            project.synthesis_data = synthesis.to_dict()
            project.current_enfoque = "requisitos"
            project.coleta_completa = True
            if state.completeness is not None:
                project.informacoes_essenciais = dict(state.completeness.essential_info)

        project.updated_at = datetime.utcnow()
        db.session.flush()
        return project

    @staticmethod
    def load_state(project: Project) -> ConversationState:
        return ConversationState.from_snapshot(project.collection_status)

    @staticmethod
    def load_synthesis(project: Project) -> Optional[SynthesisData]:
        if not project.synthesis_data:
            return None
        return SynthesisData.from_dict(project.synthesis_data)


class MessageRepo:
    """Repository for ProjectMessage CRUD operations."""

    @staticmethod
    def add(
        project_id: str,
        role: str,
        content: str,
        stage: Optional[str] = None,
        payload: Optional[dict] = None,
        created_at: Optional[datetime] = None,
    ) -> ProjectMessage:
        """Add a new message to a project, keeping insertion order."""
        last_seq = (
            db.session.query(func.max(ProjectMessage.seq))
            .filter(ProjectMessage.project_id == project_id)
            .scalar()
        )
        msg = ProjectMessage(
            project_id=project_id,
            seq=(last_seq or 0) + 1,
            role=role,
            content=content,
            stage=stage,
            payload=payload,
            created_at=created_at or datetime.utcnow(),
        )
        db.session.add(msg)
        db.session.flush()
        return msg

    @staticmethod
    def list_for_project(project_id: str, limit: Optional[int] = None) -> List[ProjectMessage]:
        """List all messages for a project, in conversation order."""
        query = (
            db.session.query(ProjectMessage)
            .filter(ProjectMessage.project_id == project_id)
            .order_by(ProjectMessage.seq)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def to_domain(row: ProjectMessage) -> Message:
        return Message(
            role=row.role,
            content=row.content,
            created_at=row.created_at,
            metadata=dict(row.payload or {}),
        )


class UserProfileRepo:
    """Read-only access to the users table."""

    @staticmethod
    def get(user_id: str) -> Optional[User]:
        return db.session.get(User, str(user_id))


class SqlConversationStore:
    """
    Store do orquestrador sobre o banco: cada gravação é confirmada
    imediatamente; em erro faz rollback e repassa a exceção ao orquestrador.
    """

    def append_message(self, project_id, message: Message) -> None:
        try:
            MessageRepo.add(
                project_id,
                role=message.role,
                content=message.content,
                stage=(message.metadata or {}).get('phase'),
                payload=dict(message.metadata or {}),
                created_at=message.created_at,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def save_state(self, project_id, state: ConversationState, synthesis: Optional[SynthesisData]) -> None:
        try:
            ProjectRepo.save_state(project_id, state, synthesis)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
