"""
Tests pour les endpoints /audit-logs (liste, statistiques, types d'action).
"""
import pytest

from src.services.audit import AuditContext, audit_logger, permit_snapshot


@pytest.fixture
def seeded(db, make_user, make_permit):
    """Historique : 2 créations, 3 mises à jour de lieu, 1 changement de statut."""
    alice = make_user(username="alice", full_name="Alice Schmidt")
    bob = make_user(username="bob")
    p1 = make_permit()
    p2 = make_permit(type="confined_space")

    audit_logger.log_permit_creation(db, p1, AuditContext(user_id=alice.id, action_type="create"))
    audit_logger.log_permit_creation(db, p2, AuditContext(user_id=bob.id, action_type="create"))
    for i in range(3):
        original = permit_snapshot(p1)
        p1.location = f"Halle {i + 10}"
        db.commit()
        audit_logger.log_permit_changes(db, original, p1, AuditContext(user_id=alice.id))
    original = permit_snapshot(p2)
    p2.status = "approved"
    db.commit()
    audit_logger.log_permit_changes(db, original, p2, AuditContext(user_id=bob.id))
    return {"alice": alice, "bob": bob, "p1": p1, "p2": p2}


def test_list_empty(client):
    """Liste vide sans historique."""
    response = client.get("/audit-logs")
    assert response.status_code == 200
    assert response.json() == []


def test_list_returns_camel_case_entries(client, seeded):
    """Les entrées sont renvoyées en camelCase, plus récentes d'abord."""
    data = client.get("/audit-logs").json()
    assert len(data) == 7
    first = data[0]
    assert first["actionType"] == "status_change"
    assert first["permitIdString"] == seeded["p2"].permit_id
    assert first["permitType"] == "confined_space"
    assert first["userName"] == "bob"
    assert first["userFullName"] is None
    assert set(first) >= {"id", "permitId", "userId", "fieldName", "oldValue", "newValue", "metadata", "createdAt"}


def test_filter_by_action_type_and_limit(client, seeded):
    """actionType + limit : jamais plus que limit, jamais un autre type."""
    data = client.get("/audit-logs?actionType=update&limit=2").json()
    assert len(data) == 2
    assert all(d["actionType"] == "update" for d in data)


def test_filter_by_permit_and_user(client, seeded):
    """Les filtres permitId et userId se combinent."""
    p1 = seeded["p1"].id
    alice = seeded["alice"].id
    data = client.get(f"/audit-logs?permitId={p1}&userId={alice}").json()
    assert len(data) == 4
    assert {d["permitId"] for d in data} == {p1}

    data = client.get(f"/audit-logs?permitId={p1}&userId={seeded['bob'].id}").json()
    assert data == []


def test_pagination(client, seeded):
    """limit/offset paginent sans recouvrement."""
    page1 = client.get("/audit-logs?limit=4&offset=0").json()
    page2 = client.get("/audit-logs?limit=4&offset=4").json()
    assert len(page1) == 4
    assert len(page2) == 3
    assert not {d["id"] for d in page1} & {d["id"] for d in page2}


def test_unknown_action_type_is_rejected(client):
    response = client.get("/audit-logs?actionType=rename")
    assert response.status_code == 400


def test_limit_is_bounded(client):
    """La taille de page est bornée (validation 422)."""
    assert client.get("/audit-logs?limit=0").status_code == 422
    assert client.get("/audit-logs?limit=100000").status_code == 422


def test_search_narrows_page_only(client, seeded):
    """La recherche réduit la page renvoyée sans changer le nombre chargé."""
    response = client.get("/audit-logs?search=halle 11")
    assert response.status_code == 200
    data = response.json()
    assert response.headers["X-Total-Fetched"] == "7"
    assert {d["fieldName"] for d in data} == {"location"}
    assert len(data) == 2  # "Halle 11" apparaît en nouvelle puis en ancienne valeur


def test_stats(client, seeded):
    """Statistiques globales."""
    response = client.get("/audit-logs/stats")
    assert response.status_code == 200
    stats = response.json()
    assert stats["totalLogs"] == 7
    assert stats["todayLogs"] == 7
    assert stats["recentActions"][0] == {"actionType": "update", "count": 4}
    assert {"actionType": "create", "count": 2} in stats["recentActions"]


def test_stats_top(client, seeded):
    stats = client.get("/audit-logs/stats?top=1").json()
    assert stats["recentActions"] == [{"actionType": "update", "count": 4}]


def test_action_types_vocabulary(client):
    """Vocabulaire fermé des types d'action avec libellés."""
    data = client.get("/audit-logs/action-types").json()
    assert [d["value"] for d in data] == ["create", "update", "delete", "status_change", "approval", "signature"]
    assert data[0]["label"] == "Erstellt"
