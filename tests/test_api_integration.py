"""
Integration tests for the Pawn Ledger API
Tests end-to-end workflows using FastAPI TestClient
"""

import time

import jwt
import pytest
from fastapi.testclient import TestClient

from pawn_ledger.api import app
from pawn_ledger.api.auth import LedgerSystem, get_ledger_system
from pawn_ledger.config import PawnLedgerConfig, get_config
from pawn_ledger.storage import InMemoryStorage


SECRET = "integration-test-secret"


def token_for(user_id, **claims):
    payload = {"sub": user_id}
    payload.update(claims)
    return jwt.encode(payload, SECRET, algorithm="HS256")


def auth(user_id="alice"):
    return {"Authorization": f"Bearer {token_for(user_id)}"}


@pytest.fixture
def config():
    return PawnLedgerConfig(auth_enabled=True, jwt_secret=SECRET, default_page_size=10, max_page_size=50)


@pytest.fixture
def client(config):
    """Test client backed by a fresh in-memory ledger"""
    test_system = LedgerSystem(storage=InMemoryStorage(), config=config)

    app.dependency_overrides[get_ledger_system] = lambda: test_system
    app.dependency_overrides[get_config] = lambda: config

    yield TestClient(app)

    app.dependency_overrides.clear()


def create_particular(client, name="Ravi Jewellers", user="alice", **fields):
    body = {"name": name}
    body.update(fields)
    r = client.post("/particulars", json=body, headers=auth(user))
    assert r.status_code == 201
    return r.json()["particular"]


def create_transaction(client, particular_id, user="alice", **fields):
    body = {
        "particularId": particular_id,
        "transactionType": "cash",
        "transactionFlow": "incoming",
        "quantity": 1,
        "total": 100
    }
    body.update(fields)
    r = client.post("/transactions", json=body, headers=auth(user))
    assert r.status_code == 201
    return r.json()["transaction"]


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Pawn Ledger API"
        assert "particulars" in data["endpoints"]


class TestAuthentication:
    """Bearer token handling"""

    def test_missing_token(self, client):
        r = client.get("/particulars")
        assert r.status_code == 401
        assert r.json() == {"error": "Access token required", "code": "UNAUTHORIZED"}

    def test_invalid_token(self, client):
        r = client.get("/particulars", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 401
        assert r.json()["error"] == "Invalid token"

    def test_wrong_secret(self, client):
        forged = jwt.encode({"sub": "alice"}, "some-other-secret", algorithm="HS256")
        r = client.get("/particulars", headers={"Authorization": f"Bearer {forged}"})
        assert r.status_code == 401

    def test_expired_token(self, client):
        expired = token_for("alice", exp=int(time.time()) - 60)
        r = client.get("/particulars", headers={"Authorization": f"Bearer {expired}"})
        assert r.status_code == 401
        assert r.json()["error"] == "Token expired"

    def test_legacy_user_id_claim(self, client):
        legacy = jwt.encode({"userId": "alice"}, SECRET, algorithm="HS256")
        r = client.get("/particulars", headers={"Authorization": f"Bearer {legacy}"})
        assert r.status_code == 200

    def test_auth_disabled_uses_anonymous_owner(self, client, config):
        config.auth_enabled = False
        r = client.post("/particulars", json={"name": "Walk-in"})
        assert r.status_code == 201
        assert r.json()["particular"]["ownerId"] == "test_user"


class TestParticularFlow:
    """End-to-end particular management"""

    def test_create_particular(self, client):
        particular = create_particular(client, contactNumber="9876543210", identityDocument="PAN-1")

        assert particular["name"] == "Ravi Jewellers"
        assert particular["contactNumber"] == "9876543210"
        assert particular["identityDocument"] == "PAN-1"
        assert particular["totalAssets"] == 0
        assert particular["totalCash"] == 0
        assert particular["totalIncoming"] == 0
        assert particular["totalOutgoing"] == 0
        assert particular["netPosition"] == 0
        assert particular["ownerId"] == "alice"

    def test_create_without_name(self, client):
        r = client.post("/particulars", json={"contactNumber": "123"}, headers=auth())
        assert r.status_code == 400
        data = r.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"][0]["field"] == "name"

    def test_list_and_search(self, client):
        create_particular(client, "Ramesh")
        create_particular(client, "Suresh", contactNumber="55512")
        create_particular(client, "Someone Else", user="bob")

        r = client.get("/particulars", headers=auth())
        assert r.status_code == 200
        data = r.json()
        assert [p["name"] for p in data["particulars"]] == ["Suresh", "Ramesh"]
        assert data["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}

        r = client.get("/particulars", params={"search": "555"}, headers=auth())
        assert [p["name"] for p in r.json()["particulars"]] == ["Suresh"]

    def test_page_size_is_capped(self, client):
        create_particular(client)
        r = client.get("/particulars", params={"limit": 500}, headers=auth())
        assert r.json()["pagination"]["limit"] == 50

    def test_invalid_page(self, client):
        r = client.get("/particulars", params={"page": 0}, headers=auth())
        assert r.status_code == 400

    def test_other_user_gets_not_found(self, client):
        particular = create_particular(client)

        r = client.get(f"/particulars/{particular['id']}", headers=auth("bob"))
        assert r.status_code == 404
        assert r.json() == {"error": "Particular not found", "code": "PARTICULAR_NOT_FOUND"}

        r = client.delete(f"/particulars/{particular['id']}", headers=auth("bob"))
        assert r.status_code == 404

    def test_update_particular(self, client):
        particular = create_particular(client)

        r = client.put(f"/particulars/{particular['id']}", json={"address": "1 Main Road"}, headers=auth())
        assert r.status_code == 200
        updated = r.json()["particular"]
        assert updated["address"] == "1 Main Road"
        assert updated["name"] == "Ravi Jewellers"

    def test_update_clears_contact_number(self, client):
        particular = create_particular(client, contactNumber="999", address="Old Street")

        r = client.put(f"/particulars/{particular['id']}", json={"contactNumber": None}, headers=auth())
        assert r.status_code == 200
        assert r.json()["particular"]["contactNumber"] is None

        data = client.get(f"/particulars/{particular['id']}", headers=auth()).json()
        assert data["contactNumber"] is None
        assert data["address"] == "Old Street"

    def test_update_rejects_null_name(self, client):
        particular = create_particular(client)
        r = client.put(f"/particulars/{particular['id']}", json={"name": None}, headers=auth())
        assert r.status_code == 400

    def test_delete_particular_cascades(self, client):
        particular = create_particular(client)
        transaction = create_transaction(client, particular["id"])

        r = client.delete(f"/particulars/{particular['id']}", headers=auth())
        assert r.status_code == 200
        assert r.json()["deletedTransactions"] == 1

        assert client.get(f"/particulars/{particular['id']}", headers=auth()).status_code == 404
        assert client.get(f"/transactions/{transaction['id']}", headers=auth()).status_code == 404


class TestTransactionFlow:
    """End-to-end transaction posting and rebalancing"""

    def test_create_updates_particular(self, client):
        particular = create_particular(client)

        transaction = create_transaction(
            client, particular["id"],
            transactionType="metal", quantity=10, rate=6000, percentage=91.6, total=54960,
            description="Gold chain"
        )

        assert transaction["particularId"] == particular["id"]
        assert transaction["transactionType"] == "metal"
        assert transaction["transactionFlow"] == "incoming"
        assert transaction["total"] == 54960
        assert transaction["percentage"] == 91.6

        r = client.get(f"/particulars/{particular['id']}", headers=auth())
        data = r.json()
        assert data["totalAssets"] == 54960
        assert data["totalIncoming"] == 54960
        assert data["totalCash"] == 0

    def test_percentage_clamped(self, client):
        particular = create_particular(client)
        transaction = create_transaction(client, particular["id"], transactionType="metal", percentage=150)
        assert transaction["percentage"] == 100

    def test_missing_total(self, client):
        particular = create_particular(client)
        r = client.post("/transactions", json={
            "particularId": particular["id"],
            "transactionType": "cash",
            "transactionFlow": "incoming",
            "quantity": 1
        }, headers=auth())
        assert r.status_code == 400
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_missing_total_is_computed_when_recomputing(self, config):
        config.recompute_transaction_totals = True
        system = LedgerSystem(storage=InMemoryStorage(), config=config)
        app.dependency_overrides[get_ledger_system] = lambda: system
        app.dependency_overrides[get_config] = lambda: config
        try:
            client = TestClient(app)
            particular = create_particular(client)

            r = client.post("/transactions", json={
                "particularId": particular["id"],
                "transactionType": "metal",
                "transactionFlow": "incoming",
                "quantity": 2,
                "rate": 500,
                "percentage": 50
            }, headers=auth())

            assert r.status_code == 201
            assert r.json()["transaction"]["total"] == 500
            data = client.get(f"/particulars/{particular['id']}", headers=auth()).json()
            assert data["totalAssets"] == 500
        finally:
            app.dependency_overrides.clear()

    def test_invalid_flow(self, client):
        particular = create_particular(client)
        r = client.post("/transactions", json={
            "particularId": particular["id"],
            "transactionType": "cash",
            "transactionFlow": "sideways",
            "quantity": 1,
            "total": 5
        }, headers=auth())
        assert r.status_code == 400

    def test_create_against_other_users_particular(self, client):
        particular = create_particular(client, user="bob")
        r = client.post("/transactions", json={
            "particularId": particular["id"],
            "transactionType": "cash",
            "transactionFlow": "incoming",
            "quantity": 1,
            "total": 5
        }, headers=auth("alice"))
        assert r.status_code == 404

    def test_update_rebalances(self, client):
        particular = create_particular(client)
        transaction = create_transaction(client, particular["id"], total=100)

        r = client.put(f"/transactions/{transaction['id']}", json={
            "transactionType": "metal",
            "transactionFlow": "outgoing",
            "total": 40
        }, headers=auth())
        assert r.status_code == 200
        assert r.json()["transaction"]["total"] == 40

        data = client.get(f"/particulars/{particular['id']}", headers=auth()).json()
        assert data["totalIncoming"] == 0
        assert data["totalOutgoing"] == 40
        assert data["totalCash"] == 0
        assert data["totalAssets"] == -40

    def test_delete_reverses(self, client):
        particular = create_particular(client)
        create_transaction(client, particular["id"], total=100)
        second = create_transaction(client, particular["id"], transactionFlow="outgoing", total=30)

        r = client.delete(f"/transactions/{second['id']}", headers=auth())
        assert r.status_code == 200

        data = client.get(f"/particulars/{particular['id']}", headers=auth()).json()
        assert data["totalCash"] == 100
        assert data["totalOutgoing"] == 0

    def test_list_for_particular_with_filters(self, client):
        particular = create_particular(client)
        create_transaction(client, particular["id"], total=10)
        create_transaction(client, particular["id"], transactionType="metal", total=20)
        create_transaction(client, particular["id"], transactionType="metal", transactionFlow="outgoing", total=30)

        r = client.get(
            f"/transactions/particular/{particular['id']}",
            params={"transactionType": "metal"},
            headers=auth()
        )
        assert r.status_code == 200
        data = r.json()
        assert [t["total"] for t in data["transactions"]] == [30, 20]
        assert all(t["particularName"] == "Ravi Jewellers" for t in data["transactions"])
        assert data["pagination"]["total"] == 2

    def test_get_transaction_includes_particular_name(self, client):
        particular = create_particular(client)
        transaction = create_transaction(client, particular["id"])

        r = client.get(f"/transactions/{transaction['id']}", headers=auth())
        assert r.status_code == 200
        assert r.json()["particularName"] == "Ravi Jewellers"

        assert client.get(f"/transactions/{transaction['id']}", headers=auth("bob")).status_code == 404


class TestDashboardFlow:
    """Dashboard aggregation over HTTP"""

    def test_overview(self, client):
        gold = create_particular(client, "Gold Client")
        cash = create_particular(client, "Cash Client")
        create_transaction(client, gold["id"], transactionType="metal", total=5000)
        create_transaction(client, cash["id"], transactionFlow="outgoing", total=1200)
        create_particular(client, "Not Mine", user="bob")

        r = client.get("/dashboard/overview", headers=auth())
        assert r.status_code == 200
        data = r.json()

        assert data["overview"] == {
            "totalIncoming": 5000,
            "totalOutgoing": 1200,
            "totalCash": -1200,
            "totalAssets": 5000,
            "netPosition": 3800,
            "totalParticulars": 2
        }
        assert [t["particularName"] for t in data["recentTransactions"]] == ["Cash Client", "Gold Client"]
        assert {(s["transactionType"], s["transactionFlow"]) for s in data["transactionStats"]} == {
            ("cash", "outgoing"), ("metal", "incoming")
        }
        assert len(data["monthlyStats"]) >= 1

    def test_particulars_summary(self, client):
        particular = create_particular(client)
        create_transaction(client, particular["id"], total=250)

        data = client.get("/dashboard/particulars-summary", headers=auth()).json()

        assert data["particulars"][0]["name"] == "Ravi Jewellers"
        assert data["particulars"][0]["netPosition"] == 250
        assert data["totals"]["totalIncoming"] == 250

    def test_analytics(self, client):
        particular = create_particular(client)
        create_transaction(client, particular["id"], transactionType="metal", total=75)

        data = client.get("/dashboard/analytics", params={"period": "week"}, headers=auth()).json()

        assert data["period"] == "week"
        assert data["typeDistribution"] == [{"transactionType": "metal", "count": 1, "total": 75}]
        assert data["topParticulars"][0]["name"] == "Ravi Jewellers"
