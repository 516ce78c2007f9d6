"""
Pytest fixtures for ERP gateway backend tests.

Provides the app on an in-memory database, per-test table wipe, staff
accounts with RFID cards, auth headers and a stubbed ERP built on
httpx.MockTransport.
"""

import json

import httpx
import pytest
from app import create_app
from app.extensions import db
from app.models import User
from app.services import auth_service, erp_client, session_service
from app.services.erp_client import ErpClient, ErpConfig

# bcrypt at cost 12 makes every fixture user take ~250ms
auth_service.BCRYPT_ROUNDS = 4

TEST_PASSWORD = "secret123"

ERP_TEST_CONFIG = {
    'ERP_BASE_URL': 'https://erp.test',
    'ERP_USERNAME': 'gateway',
    'ERP_PASSWORD': 'gateway-pass',
    'ERP_CLIENT': '300',
    'ERP_GR_PATH': '/zapi/ZAPI/OJI_GR_ENTRY',
    'ERP_PO_PATH': "/po(po_no='{po_no}')/Set",
    'ERP_TIMEOUT_SECONDS': 5,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        **ERP_TEST_CONFIG,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
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


class ErpStub:
    """
    Scripted ERP. Each request is recorded; the reply comes from `handler`,
    which tests replace to simulate the different ERP behaviours.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(
            200, json={"mat_doc": "5000012345", "doc_year": "2025"}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def reply(self, status: int, body=None, text: str | None = None) -> None:
        if text is not None:
            self.handler = lambda request: httpx.Response(status, text=text)
        else:
            self.handler = lambda request: httpx.Response(status, json=body)

    def fail_with(self, exc_type, message: str) -> None:
        def handler(request):
            raise exc_type(message, request=request)
        self.handler = handler

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture(scope='function')
def erp(app):
    """Swap the app's ERP client for one that talks to an ErpStub."""
    stub = ErpStub()
    original = app.extensions[erp_client.EXTENSION_KEY]
    app.extensions[erp_client.EXTENSION_KEY] = ErpClient(
        ErpConfig.from_mapping(app.config),
        transport=httpx.MockTransport(stub),
    )
    yield stub
    app.extensions[erp_client.EXTENSION_KEY] = original


def make_user(
    db_session,
    user_id: str,
    *,
    first_name: str = "Test",
    last_name: str = "User",
    department: str = "WAREHOUSE",
    id_card: str | None = None,
    status: str = "active",
    email: str | None = None,
) -> User:
    user = User(
        user_id=user_id,
        first_name=first_name,
        last_name=last_name,
        full_name=f"{first_name} {last_name}",
        role="Operator",
        department=department,
        email=email or f"{user_id.lower()}@example.com",
        password_hash=auth_service.hash_password(TEST_PASSWORD),
        status=status,
        id_card=id_card,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def operator(db_session):
    """Warehouse operator who is logged in on the terminal."""
    return make_user(db_session, "OJSAIT001", first_name="Budi", last_name="Santoso",
                     id_card="0011223344")


@pytest.fixture
def supervisor(db_session):
    """Second active account whose card can be tapped on someone else's session."""
    return make_user(db_session, "OJSAIT002", first_name="Sari", last_name="Wijaya",
                     id_card="0099887766")


@pytest.fixture
def inactive_user(db_session):
    return make_user(db_session, "OJSAIT003", first_name="Old", last_name="Badge",
                     id_card="0055555555", status="inactive")


@pytest.fixture
def no_card_user(db_session):
    """Active account with no RFID card registered."""
    return make_user(db_session, "OJSAIT004", first_name="Desk", last_name="Only")


@pytest.fixture
def it_admin(db_session):
    return make_user(db_session, "OJSAIT010", first_name="Ina", last_name="Admin",
                     department="IT", id_card="0010101010")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture
def operator_headers(operator):
    return headers_for(operator)


@pytest.fixture
def admin_headers(it_admin):
    return headers_for(it_admin)


def gr_payload(credential: str = "0011223344", items: list | None = None, **overrides) -> dict:
    """A valid Goods-Receipt submission (two lines by default)."""
    payload = {
        "credential": credential,
        "delivery_note": "DN-2025-0001",
        "doc_date": "14-03-2025",
        "post_date": "15-03-2025",
        "items": items if items is not None else [
            {"po_no": "4500001234", "line_no": "10", "qty": 5, "plant": "1000",
             "sloc": "WH01", "batch_no": "B001"},
            {"po_no": "4500001234", "line_no": "20", "qty": 2.5, "plant": "1000"},
        ],
    }
    payload.update(overrides)
    return payload
