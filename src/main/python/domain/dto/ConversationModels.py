"""ORM models for the Cenário interview (projects and their messages)."""
import uuid
from datetime import datetime
from domain.interfaces.dataprovider.DatabaseConfig import db


class Project(db.Model):
    """SQLAlchemy ORM model for projects table (uma demanda)."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(64), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)

    # Snapshot do ConversationState
    collection_status = db.Column(db.JSON, nullable=True)
    synthesis_data = db.Column(db.JSON, nullable=True)
    current_enfoque = db.Column(db.String(32), nullable=False, default="cenario")
    coleta_completa = db.Column(db.Boolean, nullable=False, default=False)
    completude_score = db.Column(db.Integer, nullable=True)
    informacoes_essenciais = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    messages = db.relationship(
        "ProjectMessage",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="dynamic",
        order_by="ProjectMessage.seq"
    )

    def __repr__(self):
        return f"<Project {self.id} title='{self.title}'>"

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'current_enfoque': self.current_enfoque,
            'coleta_completa': self.coleta_completa,
            'completude_score': self.completude_score,
            'informacoes_essenciais': self.informacoes_essenciais,
            'has_synthesis': self.synthesis_data is not None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class ProjectMessage(db.Model):
    """SQLAlchemy ORM model for project_messages table."""

    __tablename__ = "project_messages"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # ordem de inserção; created_at pode empatar dentro do mesmo turno
    seq = db.Column(db.Integer, nullable=False, default=0)
    role = db.Column(db.String(20), nullable=False)  # user|assistant|system
    content = db.Column(db.Text, nullable=False)
    stage = db.Column(db.String(64), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    project = db.relationship("Project", back_populates="messages")

    def __repr__(self):
        return f"<ProjectMessage {self.id} role={self.role}>"
