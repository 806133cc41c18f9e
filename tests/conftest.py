import pytest
from fastapi.testclient import TestClient
from cmskit.api.deps import AdminUser, require_admin_user
from cmskit.core.config import Settings
from cmskit.db.session import Base, create_db_engine
from cmskit.main import create_app


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", locales=["en", "fr"], locale="en", per_page=20)


@pytest.fixture
def app(settings, engine):
    """App on an in-memory database with the admin guard stubbed out.

    The lifespan (migrations, modules file) is not run: the client is used
    without a ``with`` block and ``blocks`` is created from the ORM metadata.
    """
    app = create_app(settings, engine=engine)
    app.dependency_overrides[require_admin_user] = lambda: AdminUser(name="tester", guard="twill_users", id=7)
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
