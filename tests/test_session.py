"""
Tests for the session lifecycle in `whatsapp.session`.
"""

import time
import threading

import pytest

from whatsapp.models import ConnectionState, Notification, SessionInfo
from whatsapp.session import SessionManager, render_qr

from conftest import make_ready


def drain(subscription):
    items = []
    while not subscription.empty():
        items.append(subscription.get_nowait())
    return items


def test_start_builds_and_initializes_one_client(session, clients):
    session.start()
    session.start()

    assert len(clients) == 1
    assert clients[0].initialized
    assert session.state is ConnectionState.STARTING
    assert not session.is_ready


def test_qr_then_authenticated(session, relay):
    subscription = relay.subscribe()
    session.start()

    session.client.fire("qr", "2@abc")
    assert session.state is ConnectionState.AWAITING_LOGIN
    assert session.challenge == "data:image/png;base64,2@abc"

    session.client.fire("authenticated")
    assert session.state is ConnectionState.AUTHENTICATING
    assert session.challenge is None

    assert drain(subscription) == [
        Notification("qr", "data:image/png;base64,2@abc"),
        Notification("authenticated"),
    ]


def test_loading_is_relayed_without_state_change(session, relay):
    subscription = relay.subscribe()
    session.start()
    session.client.fire("authenticated")

    session.client.fire("loading_screen", 42, "Carregando conversas")

    assert session.state is ConnectionState.AUTHENTICATING
    assert drain(subscription)[-1] == Notification("loading", {"percent": 42, "message": "Carregando conversas"})


def test_ready_only_after_settle_delay(relay, clients, fake_client):
    def factory():
        clients.append(fake_client)
        return fake_client

    manager = SessionManager(client_factory=factory, relay=relay, settle_delay=60, qr_renderer=str)
    manager.start()
    try:
        fake_client.fire("ready", SessionInfo(name="Ana", phone="5511"))
        assert manager.state is not ConnectionState.READY
        assert manager.info is None
    finally:
        manager.shutdown()


def test_ready_after_settle_delay_publishes_identity(session, relay):
    subscription = relay.subscribe()
    session.start()

    info = make_ready(session, SessionInfo(name="Ana", phone="5511999990000"))

    assert session.is_ready
    assert session.info == info
    assert drain(subscription) == [Notification("ready", {"name": "Ana", "phone": "5511999990000"})]


def test_auth_failure(session, relay):
    subscription = relay.subscribe()
    session.start()

    session.client.fire("auth_failure", "Falha ao restaurar a sessão")

    assert session.state is ConnectionState.FAILED
    assert drain(subscription) == [Notification("auth_failure", "Falha ao restaurar a sessão")]


def test_disconnect_clears_identity_and_rebuilds_client(session, relay, clients):
    session.start()
    make_ready(session)
    subscription = relay.subscribe()

    session.client.fire("disconnected", "LOGOUT")

    assert session.state is ConnectionState.DISCONNECTED
    assert not session.is_ready
    assert session.info is None
    assert session.challenge is None
    assert len(clients) == 2
    assert clients[0].destroyed
    assert clients[1].initialized
    assert session.client is clients[1]
    assert drain(subscription) == [Notification("disconnected", "LOGOUT")]


def test_disconnect_during_settle_delay_discards_ready(session, clients):
    session.settle_delay = 0.05
    session.start()

    clients[0].fire("ready", SessionInfo(name="Ana", phone="5511"))
    clients[0].fire("disconnected", "NAVIGATION")
    time.sleep(0.2)

    assert session.state is ConnectionState.DISCONNECTED
    assert session.info is None


def test_events_from_a_replaced_client_are_ignored(session, clients):
    session.start()
    clients[0].fire("disconnected", "LOGOUT")

    clients[0].fire("qr", "stale")

    assert session.challenge is None
    assert session.state is ConnectionState.DISCONNECTED


def test_logout_without_client_is_a_noop(session):
    assert session.logout() is False


def test_logout_tears_down_and_starts_a_fresh_client(session, clients):
    session.start()
    make_ready(session)

    assert session.logout() is True

    assert clients[0].logged_out
    assert clients[0].destroyed
    assert session.client is clients[1]
    assert clients[1].initialized
    assert not session.is_ready
    assert session.info is None


def test_logout_while_waiting_for_qr_scan(session, clients):
    session.start()
    clients[0].fire("qr", "first")

    assert session.logout() is True
    assert session.challenge is None

    clients[1].fire("qr", "second")
    assert session.challenge == "data:image/png;base64,second"


def test_replay_events(session):
    assert session.replay_events() == []

    session.start()
    session.client.fire("qr", "token")
    assert session.replay_events() == [Notification("qr", "data:image/png;base64,token")]

    make_ready(session, SessionInfo(name="Ana", phone="5511"))
    assert session.replay_events() == [Notification("ready", {"name": "Ana", "phone": "5511"})]


def test_render_qr_returns_png_data_url():
    image = render_qr("2@AbCdEf,ghIJ==,klMN==")
    assert image.startswith("data:image/png;base64,")
    assert len(image) > 100


def test_failed_logout_still_replaces_the_client(session, clients):
    session.start()
    make_ready(session)

    def timeout():
        raise TimeoutError("protocol timeout")
    clients[0].logout = timeout

    with pytest.raises(TimeoutError):
        session.logout()

    assert clients[0].destroyed
    assert len(clients) == 2
    assert session.client is clients[1]
    assert clients[1].initialized

    clients[1].fire("qr", "fresh")
    assert session.challenge == "data:image/png;base64,fresh"


def test_stale_event_waiting_on_the_lock_is_dropped_after_logout(session, clients):
    session.start()

    with session._lock:
        stale = threading.Thread(target=clients[0].fire, args=("disconnected", "NAVIGATION"))
        stale.start()
        time.sleep(0.05)
        session.logout()
    stale.join(timeout=2)

    assert not stale.is_alive()
    assert len(clients) == 2
    assert session.client is clients[1]
    assert not clients[1].destroyed
    assert session.state is ConnectionState.STARTING
