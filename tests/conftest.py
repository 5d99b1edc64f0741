import pytest

from app import create_app, db


@pytest.fixture()
def app():
    app = create_app("testing")

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(app):
    """Run a test body inside an application context"""
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()
