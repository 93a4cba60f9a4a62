"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, tenant fixtures (FREE, PRO and a second
tenant for isolation checks), request-context builders and test client.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models.tenancy import PLAN_FREE, PLAN_PRO, ROLE_USER
from stockledger.services import tenant_service
from stockledger.services.identity_service import resolve_request_context


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_LOCK_TIMEOUT_SECONDS': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def free_tenant(db_session):
    """FREE tenant 'Acme Corp' with its ADMIN. Returns (tenant, admin)."""
    return tenant_service.create_tenant(
        name="Acme Corp",
        plan=PLAN_FREE,
        admin_email="admin@acme.test",
        admin_name="Acme Admin",
    )


@pytest.fixture(scope='function')
def free_admin(free_tenant):
    return free_tenant[1]


@pytest.fixture(scope='function')
def free_user(free_tenant):
    """USER-role member of the FREE tenant."""
    tenant, _ = free_tenant
    return tenant_service.create_user(
        tenant_id=tenant.id,
        email="clerk@acme.test",
        name="Acme Clerk",
        role=ROLE_USER,
    )


@pytest.fixture(scope='function')
def pro_tenant(db_session):
    """PRO tenant 'Globex' with its ADMIN. Returns (tenant, admin)."""
    return tenant_service.create_tenant(
        name="Globex",
        plan=PLAN_PRO,
        admin_email="admin@globex.test",
        admin_name="Globex Admin",
    )


@pytest.fixture(scope='function')
def pro_admin(pro_tenant):
    return pro_tenant[1]


@pytest.fixture(scope='function')
def other_tenant(db_session):
    """Second FREE tenant used for cross-tenant checks. Returns (tenant, admin)."""
    return tenant_service.create_tenant(
        name="Beta Inc",
        plan=PLAN_FREE,
        admin_email="admin@beta.test",
        admin_name="Beta Admin",
    )


@pytest.fixture(scope='function')
def other_admin(other_tenant):
    return other_tenant[1]


@pytest.fixture(scope='function')
def context_for(db_session):
    """Build a RequestContext for a user, re-reading the tenant plan."""
    def _context_for(user):
        return resolve_request_context(user.tenant_id, user.id)
    return _context_for


@pytest.fixture(scope='function')
def headers_for(app):
    """Identity headers for a user."""
    def _headers_for(user):
        return {
            app.config["TENANT_HEADER"]: user.tenant_id,
            app.config["USER_HEADER"]: user.id,
        }
    return _headers_for
