"""Tests for the group endpoints."""
import pytest

from chatbridge.contacts import ContactInfo
from chatbridge.session import Participant

GROUP = "120363000000000001@g.us"
ANA = "5491112345678@c.us"
BEN = "5491187654321@c.us"


@pytest.fixture
def group_client(ready_client, session):
    session.add_chat(
        GROUP,
        name="Team",
        is_group=True,
        participants=[Participant(ANA, is_admin=True, is_super_admin=True), Participant(BEN)],
        description="Weekly sync",
        owner=ANA,
        unread_count=2,
    )
    session.add_contact(ANA, pushname="Ana", profile_pic="https://pic/ana")
    session.add_contact(BEN, name="Ben")
    session.add_chat("123@c.us")
    return ready_client


class TestGroupDetail:
    def test_cached_names_only_by_default(self, group_client, session):
        data = group_client.get(f"/api/groups/{GROUP}").json()

        assert data["name"] == "Team"
        assert data["description"] == "Weekly sync"
        assert data["owner"] == ANA
        assert data["participantCount"] == 2
        assert data["unreadCount"] == 2
        ana, ben = data["participants"]
        assert ana == {"id": ANA, "isAdmin": True, "isSuperAdmin": True, "name": None, "profilePic": None}
        assert ben["isAdmin"] is False
        assert session.calls["get_contact_by_id"] == 0

    def test_uses_contact_cache(self, group_client):
        group_client.app.state.caches.contacts.put(BEN, ContactInfo(displayName="Ben"))
        ben = group_client.get(f"/api/groups/{GROUP}").json()["participants"][1]
        assert ben["name"] == "Ben"

    def test_fetch_names(self, group_client, session):
        data = group_client.get(f"/api/groups/{GROUP}", params={"fetchNames": 1}).json()
        ana, ben = data["participants"]
        assert (ana["name"], ana["profilePic"]) == ("Ana", "https://pic/ana")
        assert ben["name"] == "Ben"
        assert session.calls["get_contact_by_id"] == 2

    def test_mangled_id(self, group_client):
        assert group_client.get("/api/groups/120363000000000001-g.us").json()["id"] == GROUP

    def test_not_a_group(self, group_client):
        response = group_client.get("/api/groups/123@c.us")
        assert response.status_code == 400
        assert response.json() == {"error": "Not a group chat"}

    def test_unknown_group(self, group_client):
        response = group_client.get("/api/groups/999@g.us")
        assert response.status_code == 500
        assert response.json() == {"error": "Chat not found"}

    def test_not_ready(self, api_client):
        assert api_client.get(f"/api/groups/{GROUP}").status_code == 503


class TestAdministration:
    def test_invite_code(self, group_client, session):
        session.invite_codes[GROUP] = "AbCdEf"
        data = group_client.get(f"/api/groups/{GROUP}/invite-code").json()
        assert data == {"code": "AbCdEf", "inviteLink": "https://chat.whatsapp.com/AbCdEf"}

    def test_add_normalizes_numbers(self, group_client, session):
        response = group_client.post(
            f"/api/groups/{GROUP}/participants",
            json={"participants": ["+54 9 11 0000-0003", BEN]},
        )

        data = response.json()
        assert data["success"] is True
        assert data["result"]["5491100000003@c.us"]["code"] == 200
        assert data["result"][BEN]["code"] == 409
        assert "5491100000003@c.us" in [p.id for p in session.chats[GROUP].participants]

    def test_remove_with_body(self, group_client, session):
        response = group_client.request(
            "DELETE", f"/api/groups/{GROUP}/participants", json={"participants": ["5491187654321"]}
        )
        assert response.status_code == 200
        assert [p.id for p in session.chats[GROUP].participants] == [ANA]

    def test_promote_and_demote(self, group_client, session):
        group_client.post(f"/api/groups/{GROUP}/promote", json={"participants": [BEN]})
        assert session.chats[GROUP].participants[1].is_admin is True

        group_client.post(f"/api/groups/{GROUP}/demote", json={"participants": ["5491187654321"]})
        assert session.chats[GROUP].participants[1].is_admin is False

    def test_participants_required(self, group_client):
        for method, path in [
            ("POST", "participants"),
            ("DELETE", "participants"),
            ("POST", "promote"),
            ("POST", "demote"),
        ]:
            response = group_client.request(method, f"/api/groups/{GROUP}/{path}", json={"participants": []})
            assert response.status_code == 400
            assert response.json() == {"error": "participants array required"}

    def test_subject(self, group_client, session):
        assert group_client.put(f"/api/groups/{GROUP}/subject", json={"subject": "Core"}).json() == {"success": True}
        assert session.chats[GROUP].name == "Core"

        response = group_client.put(f"/api/groups/{GROUP}/subject", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "subject required"}

    def test_description_may_be_cleared(self, group_client, session):
        group_client.put(f"/api/groups/{GROUP}/description", json={"description": None})
        assert session.chats[GROUP].description == ""

    def test_leave(self, group_client, session):
        assert group_client.post(f"/api/groups/{GROUP}/leave").json() == {"success": True}
        assert session.chats[GROUP].is_read_only is True

    def test_session_error_surfaces(self, group_client, session):
        session.failures["set_group_subject"] = RuntimeError("not an admin")
        response = group_client.put(f"/api/groups/{GROUP}/subject", json={"subject": "x"})
        assert response.status_code == 500
        assert response.json() == {"error": "not an admin"}
