"""Tests for notifications router."""

from uuid import uuid4


def _headers(user_id):
    return {"X-User-Id": str(user_id)}


def _create_request(client, offered, requested):
    r = client.post(
        "/swap-requests",
        json={
            "owner_id": str(requested.user_id),
            "offered_item_id": str(offered.id),
            "requested_item_id": str(requested.id),
        },
        headers=_headers(offered.user_id),
    )
    assert r.status_code == 201
    return r.json()


def test_owner_is_notified_of_new_request(client, setup_offered_item, setup_requested_item):
    request = _create_request(client, setup_offered_item, setup_requested_item)
    owner = _headers(setup_requested_item.user_id)

    r = client.get("/notifications", headers=owner)
    assert r.status_code == 200
    data = r.json()
    assert data["unread_count"] == 1
    assert data["items"][0]["type"] == "swap_request"
    assert data["items"][0]["related_id"] == request["id"]

    r = client.get("/notifications", headers=_headers(setup_offered_item.user_id))
    assert r.json()["items"] == []


def test_mark_notification_read(client, setup_offered_item, setup_requested_item):
    _create_request(client, setup_offered_item, setup_requested_item)
    owner = _headers(setup_requested_item.user_id)
    notification_id = client.get("/notifications", headers=owner).json()["items"][0]["id"]

    r = client.post(
        f"/notifications/{notification_id}/read",
        headers=_headers(setup_offered_item.user_id),
    )
    assert r.status_code == 404

    r = client.post(f"/notifications/{notification_id}/read", headers=owner)
    assert r.status_code == 200
    assert r.json()["is_read"] is True

    r = client.get("/notifications", params={"unread_only": True}, headers=owner)
    assert r.json() == {"items": [], "unread_count": 0}


def test_mark_all_read(client, setup_chat_room):
    room_url = f"/chat-rooms/{setup_chat_room.id}/messages"
    for text in ("first", "second"):
        client.post(
            room_url,
            json={"content": text},
            headers=_headers(setup_chat_room.participant_1),
        )
    recipient = _headers(setup_chat_room.participant_2)

    assert client.get("/notifications", headers=recipient).json()["unread_count"] == 2

    r = client.post("/notifications/read-all", headers=recipient)
    assert r.status_code == 200
    assert r.json() == {"updated": 2}
    assert client.get("/notifications", headers=recipient).json()["unread_count"] == 0


def test_unknown_notification(client, requester_id):
    r = client.post(f"/notifications/{uuid4()}/read", headers=_headers(requester_id))
    assert r.status_code == 404
