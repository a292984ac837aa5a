import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.agent import Agent
from tests.conftest import make_agent, make_chain, make_transaction

pytestmark = pytest.mark.api


def test_create_agent(client: TestClient, admin_token_headers: dict):
    response = client.post("/api/v1/agents/", headers=admin_token_headers, json={
        "name": "Pat Support",
        "email": "pat@example.com",
        "agent_type": "support",
        "anniversary_date": "2022-03-15",
        "total_gci_ytd": "45000",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["agent_type"] == "support"
    assert data["sponsor_id"] is None
    assert data["current_tier"] == 2

def test_create_agent_requires_admin(client: TestClient, agent_token_headers: dict):
    response = client.post("/api/v1/agents/", headers=agent_token_headers, json={
        "name": "Nope", "agent_type": "principal", "anniversary_date": "2022-03-15"
    })
    assert response.status_code == 403

def test_create_agent_invalid_type(client: TestClient, admin_token_headers: dict):
    response = client.post("/api/v1/agents/", headers=admin_token_headers, json={
        "name": "Odd", "agent_type": "broker", "anniversary_date": "2022-03-15"
    })
    assert response.status_code == 422

def test_create_agent_unknown_sponsor(client: TestClient, admin_token_headers: dict):
    response = client.post("/api/v1/agents/", headers=admin_token_headers, json={
        "name": "Lost", "agent_type": "principal", "anniversary_date": "2022-03-15", "sponsor_id": 12345
    })
    assert response.status_code == 409

def test_read_agent(client: TestClient, db_session: Session, admin_token_headers: dict):
    agent = make_agent(db_session, name="Readable")
    response = client.get(f"/api/v1/agents/{agent.id}", headers=admin_token_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Readable"

def test_read_agent_not_found(client: TestClient, admin_token_headers: dict):
    assert client.get("/api/v1/agents/999", headers=admin_token_headers).status_code == 404

def test_agent_user_reads_only_own_agent(client: TestClient, db_session: Session, agent_token_headers: dict, agent_user):
    other = make_agent(db_session)
    assert client.get(f"/api/v1/agents/{agent_user.id}", headers=agent_token_headers).status_code == 200
    assert client.get(f"/api/v1/agents/{other.id}", headers=agent_token_headers).status_code == 403
    assert client.get("/api/v1/agents/", headers=agent_token_headers).status_code == 403

def test_list_and_root_agents(client: TestClient, db_session: Session, admin_token_headers: dict):
    root = make_agent(db_session, name="Alpha")
    make_agent(db_session, name="Beta", sponsor=root)

    response = client.get("/api/v1/agents/", headers=admin_token_headers)
    assert [a["name"] for a in response.json()] == ["Alpha", "Beta"]

    response = client.get("/api/v1/agents/root", headers=admin_token_headers)
    assert [a["name"] for a in response.json()] == ["Alpha"]

def test_update_agent(client: TestClient, db_session: Session, admin_token_headers: dict):
    agent = make_agent(db_session)
    response = client.put(f"/api/v1/agents/{agent.id}", headers=admin_token_headers, json={"cap_type": "team"})
    assert response.status_code == 200
    assert response.json()["cap_type"] == "team"

def test_update_agent_sponsor_loop(client: TestClient, db_session: Session, admin_token_headers: dict):
    top, middle, bottom = make_chain(db_session, 3)
    response = client.put(f"/api/v1/agents/{top.id}", headers=admin_token_headers, json={"sponsor_id": bottom.id})
    assert response.status_code == 409
    assert "loop" in response.json()["detail"]

def test_delete_agent(client: TestClient, db_session: Session, admin_token_headers: dict):
    agent = make_agent(db_session, name="Leaving")
    response = client.delete(f"/api/v1/agents/{agent.id}", headers=admin_token_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Leaving"
    assert client.get(f"/api/v1/agents/{agent.id}", headers=admin_token_headers).status_code == 404

def test_delete_agent_with_downline(client: TestClient, db_session: Session, admin_token_headers: dict):
    sponsor = make_agent(db_session)
    make_agent(db_session, sponsor=sponsor)
    response = client.delete(f"/api/v1/agents/{sponsor.id}", headers=admin_token_headers)
    assert response.status_code == 409

def test_downline_tree_with_earnings(client: TestClient, db_session: Session, admin_token_headers: dict):
    root = make_agent(db_session, name="Root")
    child = make_agent(db_session, name="Child", sponsor=root)
    grandchild = make_agent(db_session, name="Grandchild", sponsor=child)
    make_transaction(db_session, grandchild, date(2024, 3, 1))

    response = client.get(f"/api/v1/agents/{root.id}/downline", headers=admin_token_headers)
    assert response.status_code == 200
    tree = response.json()
    assert tree["name"] == "Root"
    assert Decimal(tree["total_earnings"]) == Decimal("1125")
    assert tree["downline"][0]["name"] == "Child"
    assert Decimal(tree["downline"][0]["total_earnings"]) == Decimal("1125")
    assert tree["downline"][0]["downline"][0]["name"] == "Grandchild"
    assert tree["downline"][0]["downline"][0]["downline"] == []

def test_downline_tree_with_stored_cycle(client: TestClient, db_session: Session, admin_token_headers: dict):
    top, middle, bottom = make_chain(db_session, 3)
    db_session.query(Agent).filter(Agent.id == top.id).update({"sponsor_id": bottom.id})
    db_session.commit()

    response = client.get(f"/api/v1/agents/{top.id}/downline", headers=admin_token_headers)
    assert response.status_code == 409

def test_refresh_totals(client: TestClient, db_session: Session, admin_token_headers: dict):
    agent = make_agent(db_session, anniversary_date=date(2020, 1, 1))
    make_transaction(db_session, agent, date(2024, 2, 1), sale_amount=Decimal("1000000"))

    response = client.post(
        f"/api/v1/agents/{agent.id}/refresh-totals", headers=admin_token_headers, params={"as_of": "2024-06-30"}
    )
    assert response.status_code == 200
    assert Decimal(response.json()["total_gci_ytd"]) == Decimal("30000")
    assert response.json()["career_sales_count"] == 1

def test_agent_transactions_and_revenue_shares(client: TestClient, db_session: Session, admin_token_headers: dict):
    sponsor = make_agent(db_session)
    closer = make_agent(db_session, sponsor=sponsor)
    make_transaction(db_session, closer, date(2024, 3, 1))

    response = client.get(f"/api/v1/agents/{closer.id}/transactions", headers=admin_token_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1

    response = client.get(f"/api/v1/agents/{sponsor.id}/revenue-shares", headers=admin_token_headers)
    assert response.status_code == 200
    assert [Decimal(s["amount"]) for s in response.json()] == [Decimal("1125")]

    response = client.get(f"/api/v1/agents/{closer.id}/transactions", headers=admin_token_headers,
                          params={"start_date": "2025-01-01"})
    assert response.json() == []
