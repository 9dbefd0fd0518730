"""Shared WebSocket test helpers for relay integration tests."""

from urllib.parse import urlencode


def ws_path(room_id: str, player_id: str, *, is_host: bool = False, path: str = "/ws") -> str:
    """Build a relay connection path with ``room``/``player``/``host`` query parameters."""
    params = {"room": room_id, "player": player_id}
    if is_host:
        params["host"] = "true"
    return f"{path}?{urlencode(params)}"


def create_room(client) -> str:
    """Pre-create a room via POST /api/create-room and return its id."""
    response = client.post("/api/create-room")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    return body["roomId"]


def expect_connected(ws, role: str) -> dict:
    message = ws.receive_json()
    assert message["type"] == "connected"
    assert message["role"] == role
    return message
