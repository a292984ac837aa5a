import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient
from datetime import date
from decimal import Decimal
from typing import Optional
import uuid
import os

# Add project root to sys.path to allow imports from app
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.crud import crud_agent, crud_transaction, crud_user
from app.models.agent import Agent as AgentModel
from app.models.enums import AgentType, CapType, UserRole
from app.schemas.agent import AgentCreate
from app.schemas.transaction import TransactionCreate
from app.schemas.user import UserCreate

# Use a separate SQLite database for testing
TEST_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.create_all(bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="session")
def test_engine():
    Base.metadata.create_all(bind=engine)
    yield engine

@pytest.fixture(scope="function")
def db_session(test_engine):
    """
    Provides a database session for each test function.
    Tables are dropped and recreated first so every test starts empty.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client():
    # The TestClient uses the app with the overridden get_db dependency
    with TestClient(app) as c:
        yield c


# Helper to create agents directly through the CRUD layer
def make_agent(
    db: Session,
    name: Optional[str] = None,
    agent_type: AgentType = AgentType.PRINCIPAL,
    sponsor: Optional[AgentModel] = None,
    cap_type: Optional[CapType] = None,
    anniversary_date: date = date(2020, 1, 1),
    total_gci_ytd: Decimal = Decimal("0"),
    career_sales_count: int = 0,
) -> AgentModel:
    return crud_agent.create_agent(db, obj_in=AgentCreate(
        name=name or f"Agent {uuid.uuid4().hex[:6]}",
        agent_type=agent_type,
        sponsor_id=sponsor.id if sponsor else None,
        cap_type=cap_type,
        anniversary_date=anniversary_date,
        total_gci_ytd=total_gci_ytd,
        career_sales_count=career_sales_count,
    ))

def make_chain(db: Session, length: int, agent_type: AgentType = AgentType.PRINCIPAL, **kwargs) -> list:
    """Agents linked top-down: result[0] is the root, result[-1] the bottom of the chain."""
    agents = []
    sponsor = None
    for i in range(length):
        sponsor = make_agent(db, name=f"Chain {i}", agent_type=agent_type, sponsor=sponsor, **kwargs)
        agents.append(sponsor)
    return agents

# Helper function to create a user and get token
def _create_user_and_get_token(
    db: Session, client: TestClient, role: UserRole, agent_id: Optional[int] = None
):
    username = f"user_{role.value}_{uuid.uuid4().hex[:6]}"
    password = "testpassword123"

    user = crud_user.create_user(db, obj_in=UserCreate(
        username=username,
        email=f"{username}@example.com",
        password=password,
        role=role,
        agent_id=agent_id,
    ))

    response = client.post("/api/v1/auth/login", data={"username": username, "password": password})
    if response.status_code != 200:
        raise Exception(f"Failed to log in user {username} during fixture setup: {response.text}")

    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}, user

@pytest.fixture(scope="function")
def admin_token_headers(db_session: Session, client: TestClient):
    headers, _ = _create_user_and_get_token(db_session, client, UserRole.ADMIN)
    return headers

@pytest.fixture(scope="function")
def agent_user(db_session: Session) -> AgentModel:
    """The agent that `agent_token_headers` logs in as."""
    return make_agent(db_session, name="Logged In Agent")

@pytest.fixture(scope="function")
def agent_token_headers(db_session: Session, client: TestClient, agent_user: AgentModel):
    headers, _ = _create_user_and_get_token(db_session, client, UserRole.AGENT, agent_id=agent_user.id)
    return headers

def make_transaction(
    db: Session,
    closer: AgentModel,
    transaction_date: date,
    sale_amount: Decimal = Decimal("2000000"),
    commission_percentage: Decimal = Decimal("3"),
    company_gci: Optional[Decimal] = None,
    property_address: Optional[str] = None,
    **kwargs,
):
    return crud_transaction.create_transaction(db, obj_in=TransactionCreate(
        agent_id=closer.id,
        property_address=property_address or f"{uuid.uuid4().hex[:4]} Main Street",
        sale_amount=sale_amount,
        commission_percentage=commission_percentage,
        transaction_date=transaction_date,
        company_gci=company_gci,
        **kwargs,
    ))
