"""
Shared fixtures: an in-memory stand-in for the Playwright WhatsApp client and
a SessionManager wired to it.
"""

from collections import defaultdict

import pytest

from whatsapp.models import Chat, Contact, Participant, SessionInfo
from whatsapp.relay import NotificationRelay
from whatsapp.session import SessionManager


class FakeClient:
    """Implements the client capability set without a browser."""

    def __init__(self, chats=None, chats_by_id=None, contacts=None, evaluate_result=None):
        self.chats = chats or []
        self.chats_by_id = chats_by_id or {}
        self.contacts = contacts or {}
        self.evaluate_result = evaluate_result
        self.evaluate_calls = []
        self.handlers = defaultdict(list)
        self.initialized = False
        self.logged_out = False
        self.destroyed = False

    def on(self, event, handler):
        self.handlers[event].append(handler)

    def fire(self, event, *args):
        for handler in self.handlers[event]:
            handler(*args)

    def initialize(self):
        self.initialized = True

    def logout(self):
        self.logged_out = True

    def destroy(self):
        self.destroyed = True

    def get_chats(self):
        if isinstance(self.chats, Exception):
            raise self.chats
        return self.chats

    def get_chat_by_id(self, chat_id):
        value = self.chats_by_id.get(chat_id)
        if isinstance(value, Exception):
            raise value
        return value

    def get_contact_by_id(self, contact_id):
        value = self.contacts.get(contact_id)
        if isinstance(value, Exception):
            raise value
        return value

    def evaluate(self, script, arg=None):
        self.evaluate_calls.append((script, arg))
        if isinstance(self.evaluate_result, Exception):
            raise self.evaluate_result
        return self.evaluate_result


def group_chat(chat_id, name, participants=()):
    participants = list(participants)
    return Chat(
        id=chat_id,
        name=name,
        is_group=True,
        participants=participants,
        participant_count=len(participants),
    )


def participant(user, is_admin=False, is_super_admin=False):
    return Participant(id=f"{user}@c.us", user=user, is_admin=is_admin, is_super_admin=is_super_admin)


def contact(user, pushname=""):
    return Contact(id=f"{user}@c.us", pushname=pushname)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def relay():
    return NotificationRelay()


@pytest.fixture
def clients():
    """Every FakeClient built by the session factory, in creation order."""
    return []


@pytest.fixture
def session(relay, clients, fake_client):
    def factory():
        client = fake_client if not clients else FakeClient(
            chats=fake_client.chats,
            chats_by_id=fake_client.chats_by_id,
            contacts=fake_client.contacts,
        )
        clients.append(client)
        return client

    manager = SessionManager(
        client_factory=factory,
        relay=relay,
        settle_delay=0.01,
        qr_renderer=lambda token: f"data:image/png;base64,{token}",
    )
    yield manager
    manager.shutdown()


def make_ready(session, info=None):
    """Fire "ready" on the current client and wait for the settle delay to pass."""
    info = info or SessionInfo(name="Ana", phone="5511999990000")
    session.client.fire("ready", info)
    timer = session._settle_timer
    if timer is not None:
        timer.join(timeout=2)
    return info
