import pytest
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.conftest import make_chain, make_transaction

pytestmark = pytest.mark.api


def test_list_revenue_shares(client: TestClient, db_session: Session, admin_token_headers: dict):
    chain = make_chain(db_session, 3)
    make_transaction(db_session, chain[-1], date(2024, 3, 1))

    response = client.get("/api/v1/revenue-shares/", headers=admin_token_headers)
    assert response.status_code == 200
    assert sorted(s["tier"] for s in response.json()) == [1, 2]

def test_list_revenue_shares_requires_admin(client: TestClient, agent_token_headers: dict):
    assert client.get("/api/v1/revenue-shares/", headers=agent_token_headers).status_code == 403

def test_list_revenue_shares_requires_login(client: TestClient, db_session: Session):
    assert client.get("/api/v1/revenue-shares/").status_code == 401

def test_agent_reads_own_revenue_shares(client: TestClient, db_session: Session, agent_token_headers: dict, agent_user):
    chain = make_chain(db_session, 2)
    make_transaction(db_session, chain[-1], date(2024, 3, 1))

    response = client.get(f"/api/v1/agents/{agent_user.id}/revenue-shares", headers=agent_token_headers)
    assert response.status_code == 200
    assert response.json() == []
    assert client.get(
        f"/api/v1/agents/{chain[0].id}/revenue-shares", headers=agent_token_headers
    ).status_code == 403
