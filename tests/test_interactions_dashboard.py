from datetime import datetime, timedelta
from types import SimpleNamespace

from backend.models import Interaction, Lead
from backend.services.dashboard import dashboard_stats, latest_interest_level

from conftest import auth_header


def make_lead(db, user, name="Robert", phone="5550100", source="Website"):
    lead = Lead(client_name=name, contact_number=phone, source=source, assigned_user_id=user.id)
    db.add(lead)
    db.commit()
    return lead


def log_call(db, lead, user, at, level="warm", status="connected", follow_up_at=None):
    i = Interaction(
        lead_id=lead.id,
        interest_level=level,
        call_status=status,
        follow_up_at=follow_up_at,
        created_at=at,
        created_by=user.id,
    )
    db.add(i)
    db.commit()
    return i


# ---------------- interactions ----------------

def test_log_interaction_updates_lead(client, agent, db):
    lead = make_lead(db, agent)
    headers = auth_header(agent)

    res = client.post(
        f"/leads/{lead.id}/interactions",
        json={
            "interest_level": "hot",
            "budget": 250000,
            "call_status": "follow_up_needed",
            "follow_up_at": "2030-01-01T10:00:00+02:00",
            "notes": "Wants a 3BHK",
        },
        headers=headers,
    )

    assert res.status_code == 201
    body = res.json()
    assert body["created_by"] == agent.id
    assert body["follow_up_at"].startswith("2030-01-01T08:00:00")

    lead = client.get(f"/leads/{lead.id}", headers=headers).json()
    assert lead["interest_level"] == "hot"
    assert lead["call_status"] == "follow_up_needed"


def test_interactions_listed_newest_first(client, agent, db):
    lead = make_lead(db, agent)
    now = datetime(2024, 5, 1, 12, 0)
    log_call(db, lead, agent, now - timedelta(days=1), level="cold")
    log_call(db, lead, agent, now, level="hot")

    res = client.get(f"/leads/{lead.id}/interactions", headers=auth_header(agent))

    assert [i["interest_level"] for i in res.json()] == ["hot", "cold"]


def test_interaction_rejects_bad_level(client, agent, db):
    lead = make_lead(db, agent)

    res = client.post(
        f"/leads/{lead.id}/interactions",
        json={"interest_level": "lukewarm", "call_status": "connected"},
        headers=auth_header(agent),
    )

    assert res.status_code == 422


def test_interaction_on_someone_elses_lead(client, agent, manager, db):
    lead = make_lead(db, manager)

    res = client.post(
        f"/leads/{lead.id}/interactions",
        json={"interest_level": "hot", "call_status": "connected"},
        headers=auth_header(agent),
    )

    assert res.status_code == 403


# ---------------- dashboard ----------------

def test_latest_interest_level_tie_prefers_higher():
    at = datetime(2024, 5, 1, 12, 0)
    calls = [
        SimpleNamespace(created_at=at, interest_level="cold"),
        SimpleNamespace(created_at=at, interest_level="hot"),
        SimpleNamespace(created_at=at - timedelta(hours=1), interest_level="warm"),
    ]

    assert latest_interest_level(calls) == "hot"
    assert latest_interest_level([]) is None


def test_dashboard_stats(db, agent, manager):
    now = datetime(2024, 5, 1, 15, 0)
    robert = make_lead(db, agent, "Robert", "5550100", "Website")
    maria = make_lead(db, agent, "Maria", "5550200", "Facebook")
    make_lead(db, manager, "Other", "5550300", "Website")

    log_call(db, robert, agent, now - timedelta(days=2), level="hot")
    log_call(db, robert, agent, now - timedelta(hours=2), level="cold",
             follow_up_at=now.replace(hour=18))
    log_call(db, maria, agent, now - timedelta(days=1), level="warm",
             follow_up_at=now - timedelta(hours=5))

    stats = dashboard_stats(db, agent, now=now)

    assert stats["total_active_leads"] == 2
    assert stats["calls_made_today"] == 1
    assert stats["follow_ups_today"] == 2
    assert stats["overdue_follow_ups"] == 1
    assert stats["leads_by_source"] == {"Website": 1, "Facebook": 1}
    assert stats["leads_by_interest_level"] == {"cold": 1, "warm": 1, "hot": 0}

    assert dashboard_stats(db, manager, now=now)["total_active_leads"] == 3


def test_dashboard_endpoint(client, agent, db):
    make_lead(db, agent)

    res = client.get("/dashboard/stats", headers=auth_header(agent))

    assert res.status_code == 200
    assert res.json()["total_active_leads"] == 1
