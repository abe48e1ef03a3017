import pytest
from starlette.websockets import WebSocketDisconnect

from tests.helpers import BUYER_ID, LISTING_ID, SELLER_ID, auth_headers, receive_until, token_for


def _handshake(websocket, user_id):
    websocket.send_json({"token": token_for(user_id)})
    assert websocket.receive_json() == {"type": "connected", "data": {"userId": user_id}}
    return websocket


def test_rejects_invalid_token(client):
    with client.websocket_connect("/ws/chat") as websocket:
        websocket.send_json({"token": "garbage"})
        with pytest.raises(WebSocketDisconnect) as exc_info:
            websocket.receive_json()
    assert exc_info.value.code == 4403


def test_connect_registers_and_broadcasts_presence(client, registry):
    with client.websocket_connect("/ws/chat") as websocket:
        _handshake(websocket, BUYER_ID)
        assert receive_until(websocket, "getOnlineUsers")["data"] == [BUYER_ID]
        assert registry.resolve(BUYER_ID) is not None


def test_socket_send_reaches_peer_and_confirms_sender(client):
    with client.websocket_connect("/ws/chat") as seller, client.websocket_connect("/ws/chat") as buyer:
        _handshake(seller, SELLER_ID)
        _handshake(buyer, BUYER_ID)

        buyer.send_json(
            {
                "type": "message",
                "data": {"listingId": LISTING_ID, "content": "Is this available?", "clientId": "temp_1"},
            }
        )

        confirmation = receive_until(buyer, "messageSent")["data"]
        delivered = receive_until(seller, "message")["data"]

        assert confirmation["id"] == delivered["id"]
        assert delivered["content"] == "Is this available?"
        assert delivered["senderId"] == BUYER_ID
        assert delivered["receiverId"] == SELLER_ID

    chats = client.get("/api/v1/chat/all", headers=auth_headers(SELLER_ID)).json()
    assert chats[0]["lastMessage"] == "Is this available?"


def test_rejected_send_reports_error_and_keeps_connection(client):
    with client.websocket_connect("/ws/chat") as websocket:
        _handshake(websocket, BUYER_ID)

        websocket.send_json(
            {"type": "message", "data": {"chatId": "missing", "content": "hi", "clientId": "temp_9"}}
        )
        error = receive_until(websocket, "error")["data"]
        assert error == {"detail": "Чат не найден", "statusCode": 404, "chatId": "missing", "clientId": "temp_9"}

        websocket.send_json(
            {"type": "message", "data": {"listingId": LISTING_ID, "content": "second try"}}
        )
        assert receive_until(websocket, "messageSent")["data"]["content"] == "second try"


def test_status_is_relayed(client):
    with client.websocket_connect("/ws/chat") as seller, client.websocket_connect("/ws/chat") as buyer:
        _handshake(seller, SELLER_ID)
        _handshake(buyer, BUYER_ID)

        buyer.send_json({"type": "status", "data": {"receiverId": SELLER_ID, "status": "typing"}})

        assert receive_until(seller, "status")["data"] == {"senderId": BUYER_ID, "status": "typing"}


@pytest.mark.parametrize(
    "data",
    [
        {"listingId": LISTING_ID, "content": 123, "clientId": "temp_2"},
        {"listingId": ["L1"], "content": "hi", "clientId": "temp_2"},
    ],
)
def test_malformed_message_reports_error_and_keeps_connection(client, registry, data):
    with client.websocket_connect("/ws/chat") as websocket:
        _handshake(websocket, BUYER_ID)

        websocket.send_json({"type": "message", "data": data})
        error = receive_until(websocket, "error")["data"]
        assert error["statusCode"] == 400
        assert error["clientId"] == "temp_2"
        assert registry.resolve(BUYER_ID) is not None

        websocket.send_json({"type": "message", "data": {"listingId": LISTING_ID, "content": "valid"}})
        assert receive_until(websocket, "messageSent")["data"]["content"] == "valid"
