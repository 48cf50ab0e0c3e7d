"""
Session lifecycle for the single WhatsApp Web client of the process.

SessionManager is the only writer of the connection state. It turns client
events into ConnectionState transitions and publishes every transition on the
NotificationRelay.
"""

import io
import base64
import threading

import qrcode

from utils import report
from whatsapp.models import ConnectionState, Notification

logger = report.settings(__file__)

# WhatsApp Web keeps indexing chats for a few seconds after "ready"
SETTLE_DELAY_SECONDS = 5


def render_qr(token):
    """Render a login token as a PNG data URL (white modules, transparent background)."""
    qr = qrcode.QRCode(box_size=8, border=2)
    qr.add_data(token)
    qr.make(fit=True)
    image = qr.make_image(fill_color="white", back_color="transparent")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


class SessionManager:

    def __init__(self, client_factory, relay, settle_delay=SETTLE_DELAY_SECONDS, qr_renderer=render_qr):
        self.client_factory = client_factory
        self.relay = relay
        self.settle_delay = settle_delay
        self.qr_renderer = qr_renderer

        self.client = None
        self.state = ConnectionState.STARTING
        self.challenge = None
        self.info = None

        self._generation = 0
        self._settle_timer = None
        self._lock = threading.RLock()

    @property
    def is_ready(self):
        return self.state is ConnectionState.READY and self.client is not None

    # ==================== CLIENT LIFECYCLE ====================

    def start(self):
        with self._lock:
            if self.client is None:
                self.client = self._build_client()

    def _build_client(self):
        self._generation += 1
        generation = self._generation

        client = self.client_factory()
        client.on("qr", self._bind(generation, self.on_qr))
        client.on("authenticated", self._bind(generation, self.on_authenticated))
        client.on("loading_screen", self._bind(generation, self.on_loading))
        client.on("ready", self._bind(generation, self.on_ready))
        client.on("auth_failure", self._bind(generation, self.on_auth_failure))
        client.on("disconnected", self._bind(generation, self.on_disconnected))
        client.initialize()
        return client

    def _bind(self, generation, handler):
        def bound(*args):
            with self._lock:
                if generation != self._generation:
                    logger.debug(f"Ignoring {handler.__name__} from a replaced client")
                    return
                handler(*args)
        return bound

    def _cancel_settle(self):
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None

    def _clear_session(self):
        self._cancel_settle()
        self.info = None
        self.challenge = None

    def _destroy(self, client):
        try:
            client.destroy()
        except Exception as e:
            logger.warning(f"⚠️ Error destroying WhatsApp client: {e}")

    def logout(self):
        """Tear the current session down and start a fresh client; False when there was none."""
        with self._lock:
            if self.client is None:
                return False
            client = self.client
            self._generation += 1
            self._clear_session()
            self.state = ConnectionState.STARTING

            try:
                client.logout()
            finally:
                self._destroy(client)
                self.client = self._build_client()
            logger.info("👋 Logged out, waiting for a new QR code")
            return True

    def shutdown(self):
        with self._lock:
            self._clear_session()
            if self.client is not None:
                self._destroy(self.client)
                self.client = None

    # ==================== EVENT HANDLERS ====================

    def on_qr(self, token):
        image = self.qr_renderer(token)
        with self._lock:
            self.state = ConnectionState.AWAITING_LOGIN
            self.challenge = image
        self.relay.publish("qr", image)
        logger.info("📱 QR code received and sent to the frontend")

    def on_authenticated(self):
        with self._lock:
            self.state = ConnectionState.AUTHENTICATING
            self.challenge = None
        self.relay.publish("authenticated")
        logger.info("🔐 Authenticated")

    def on_loading(self, percent, message):
        logger.info(f"⏳ Loading: {percent}% - {message}")
        self.relay.publish("loading", {"percent": percent, "message": message})

    def on_ready(self, info):
        logger.info("✅ WhatsApp connected, waiting for chats to sync...")
        with self._lock:
            self._cancel_settle()
            self._settle_timer = threading.Timer(self.settle_delay, self._settle, args=(self._generation, info))
            self._settle_timer.daemon = True
            self._settle_timer.start()

    def _settle(self, generation, info):
        with self._lock:
            if generation != self._generation:
                return
            self._settle_timer = None
            self.state = ConnectionState.READY
            self.info = info
            self.challenge = None
        self.relay.publish("ready", info.to_dict())
        logger.info(f"✅ Initial sync finished, ready as {info.name} ({info.phone})")

    def on_auth_failure(self, reason):
        with self._lock:
            self.state = ConnectionState.FAILED
        self.relay.publish("auth_failure", reason)
        logger.error(f"❌ Authentication failed: {reason}")

    def on_disconnected(self, reason):
        logger.info(f"🔌 Disconnected: {reason}")
        with self._lock:
            self._clear_session()
            self.state = ConnectionState.DISCONNECTED
            old_client = self.client
            self.client = None
            self._generation += 1
        self.relay.publish("disconnected", reason)

        with self._lock:
            if old_client is not None:
                self._destroy(old_client)
            if self.client is None:
                self.client = self._build_client()

    # ==================== REPLAY ====================

    def replay_events(self):
        """Notifications a late subscriber needs to catch up with the current state."""
        if self.state is ConnectionState.READY and self.info is not None:
            return [Notification("ready", self.info.to_dict())]
        if self.challenge is not None:
            return [Notification("qr", self.challenge)]
        return []
