"""Test configuration and fixtures for the taxonomy service."""

from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy.pool import StaticPool

from taxonomy import create_app
from taxonomy.extensions import db
from taxonomy.services.categories import create_category


@pytest.fixture
def app() -> Generator[Flask, None, None]:
    """Create and configure a test Flask application."""
    # Use in-memory SQLite for each test
    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'poolclass': StaticPool,
            'connect_args': {'check_same_thread': False}
        },
        'SECRET_KEY': 'test-secret-key',
        'RATELIMIT_ENABLED': False,  # Disable rate limiting for tests
        'CATEGORY_MAX_DEPTH': 256,
    }
    
    # Create app with test config
    app = create_app(test_config)
    
    with app.app_context():
        # Create all tables
        db.create_all()
        yield app
        
        # Cleanup
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def runner(app: Flask):
    """Create a test CLI runner."""
    return app.test_cli_runner()


@pytest.fixture
def make_category(app: Flask):
    """Factory creating categories through the service layer."""
    def _make(name: str, slug: str | None = None, parent: dict | None = None, description: str | None = None) -> dict:
        return create_category(
            name=name,
            slug=slug or name.lower().replace(' ', '-'),
            description=description,
            parent_id=parent['id'] if parent else None,
        )
    return _make


@pytest.fixture
def tree(make_category) -> dict:
    """A small hierarchy.

        news (0)
          world (1)
            europe (2)
              france (3)
            asia (2)
          local (1)
        sport (0)
    """
    news = make_category('News')
    world = make_category('World', parent=news)
    europe = make_category('Europe', parent=world)
    france = make_category('France', parent=europe)
    asia = make_category('Asia', parent=world)
    local = make_category('Local', parent=news)
    sport = make_category('Sport')
    return {
        'news': news,
        'world': world,
        'europe': europe,
        'france': france,
        'asia': asia,
        'local': local,
        'sport': sport,
    }


