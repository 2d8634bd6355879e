from datetime import timedelta

from backend.models import Interaction, Lead, Notification, utcnow
from backend.services.notifications import NotificationFanout

from conftest import auth_header


def make_lead(db, user, name="Robert", phone="5550100"):
    lead = Lead(client_name=name, contact_number=phone, source="Website", assigned_user_id=user.id)
    db.add(lead)
    db.commit()
    return lead


def test_fanout_creates_one_per_sales_user(db, users):
    lead = make_lead(db, users["agent"])

    created = NotificationFanout(db).notify_new_leads([lead])

    assert created == len(users)
    assert {n.user_id for n in db.query(Notification).all()} == {u.id for u in users.values()}


def test_fanout_with_nothing_to_send(db, users):
    assert NotificationFanout(db).notify_new_leads([]) == 0
    assert db.query(Notification).count() == 0


def test_list_and_mark_read(client, db, agent):
    lead = make_lead(db, agent)
    NotificationFanout(db).notify_new_leads([lead, make_lead(db, agent, "Maria", "5550200")])
    headers = auth_header(agent)

    items = client.get("/notifications", headers=headers).json()
    assert len(items) == 2
    assert items[0]["title"] == "New Lead Received"

    res = client.post(f"/notifications/{items[0]['id']}/read", headers=headers)
    assert res.json()["is_read"] is True

    unread = client.get("/notifications?unread_only=true", headers=headers).json()
    assert [n["id"] for n in unread] == [items[1]["id"]]

    assert client.post("/notifications/read-all", headers=headers).json() == {"success": True, "updated": 1}
    assert client.get("/notifications?unread_only=true", headers=headers).json() == []


def test_cannot_read_someone_elses_notification(client, db, agent, manager):
    NotificationFanout(db).notify_new_leads([make_lead(db, agent)])
    theirs = db.query(Notification).filter(Notification.user_id == manager.id).one()

    res = client.post(f"/notifications/{theirs.id}/read", headers=auth_header(agent))

    assert res.status_code == 404


def test_upcoming_and_overdue_follow_ups(client, db, agent):
    now = utcnow()
    soon = make_lead(db, agent, "Soon", "5550101")
    late = make_lead(db, agent, "Late", "5550102")
    resolved = make_lead(db, agent, "Resolved", "5550103")

    db.add_all([
        Interaction(lead_id=soon.id, interest_level="warm", call_status="follow_up_needed",
                    follow_up_at=now + timedelta(days=1), created_by=agent.id,
                    created_at=now - timedelta(hours=1)),
        Interaction(lead_id=late.id, interest_level="hot", call_status="follow_up_needed",
                    follow_up_at=now - timedelta(days=1), created_by=agent.id,
                    created_at=now - timedelta(days=2)),
        # only the latest call per lead counts
        Interaction(lead_id=resolved.id, interest_level="cold", call_status="follow_up_needed",
                    follow_up_at=now + timedelta(days=2), created_by=agent.id,
                    created_at=now - timedelta(days=3)),
        Interaction(lead_id=resolved.id, interest_level="hot", call_status="follow_up_needed",
                    follow_up_at=now + timedelta(days=3), created_by=agent.id,
                    created_at=now - timedelta(days=1)),
    ])
    db.commit()
    headers = auth_header(agent)

    upcoming = client.get("/notifications/upcoming", headers=headers).json()
    assert [u["client_name"] for u in upcoming] == ["Soon", "Resolved"]
    assert upcoming[1]["interest_level"] == "hot"

    overdue = client.get("/notifications/overdue", headers=headers).json()
    assert [o["client_name"] for o in overdue] == ["Late"]
