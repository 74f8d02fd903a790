from domain.interfaces.dataprovider.DatabaseConfig import db


class User(db.Model):
    """Perfil do usuário (somente leitura para o Agente Cenário)"""

    __tablename__ = 'users'

    id = db.Column(db.String(64), primary_key=True)
    full_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    role_in_organization = db.Column(db.String(255), nullable=True)

    # Órgão ao qual o servidor está vinculado
    orgao_demandante = db.Column(db.String(255), nullable=True)
    orgao_nome = db.Column(db.String(255), nullable=True)
    orgao_cnpj = db.Column(db.String(32), nullable=True)
    endereco_completo = db.Column(db.String(500), nullable=True)
    telefone_contato = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())
    updated_at = db.Column(db.DateTime, default=db.func.current_timestamp(), onupdate=db.func.current_timestamp())

    def __repr__(self):
        return f'<User {self.id}>'
