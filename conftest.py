#!/usr/bin/env python3
"""
Pytest configuration file for Agente Cenário tests
"""

import sys
import os
import pytest

# Add src path for imports so tests can find the application modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src', 'main', 'python'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'tests'))

TEST_ENV = {
    'TESTING': 'true',
    'SECRET_KEY': 'test_secret_key',
    'DATABASE_URL': 'sqlite://',
}


@pytest.fixture
def gateway():
    """Gateway de IA roteirizado, compartilhado entre app e teste"""
    from cenario_fakes import ScriptedGateway
    return ScriptedGateway()


@pytest.fixture
def app(gateway):
    """Fixture that provides the Flask app with an in-memory database"""
    original = {key: os.environ.get(key) for key in TEST_ENV}
    os.environ.update(TEST_ENV)

    from application.config.FlaskConfig import create_api
    from domain.interfaces.dataprovider.DatabaseConfig import db

    app = create_api({
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'CENARIO_AI_GATEWAY': gateway,
    })

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()

    # Restore environment variables
    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def client(app):
    """Fixture that provides Flask test client"""
    return app.test_client()


@pytest.fixture
def profile_user(app):
    """Usuário com perfil completo para a identificação do relatório"""
    from cenario_fakes import PROFILE
    from domain.dto.UserDto import User
    from domain.interfaces.dataprovider.DatabaseConfig import db

    user = User(id='u1', **PROFILE)
    db.session.add(user)
    db.session.commit()
    return user
