"""
WhatsApp Web client driven by Playwright.

Chromium runs on a dedicated asyncio loop thread. The public methods are
synchronous so Flask request threads can call them directly; every call is
bounded by a single protocol timeout.
"""

import os
import shutil
import asyncio
import threading
import concurrent.futures
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor

import requests
from playwright.async_api import async_playwright, Error as PlaywrightError

from config import (
    CDP_URL,
    CHROME_PATH,
    HEADLESS,
    WA_POLL_INTERVAL,
    WA_PROTOCOL_TIMEOUT,
    WA_SESSION_DIR,
    WHATSAPP_URL,
)
from utils import report
from whatsapp import client_js
from whatsapp.errors import ClientNotInitialized, TransientRetrievalFailure
from whatsapp.models import Chat, Contact, SessionInfo

logger = report.settings(__file__)

EVENTS = ("qr", "authenticated", "loading_screen", "ready", "auth_failure", "disconnected")

# WhatsApp Web refuses the HeadlessChrome user agent
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--disable-gpu",
    "--disable-extensions",
]


def is_cdp_available(cdp_url):
    """Check whether a Chrome DevTools endpoint answers at cdp_url."""
    try:
        response = requests.get(f"{cdp_url}/json/version", timeout=5)
        return response.status_code == 200
    except requests.exceptions.RequestException:
        return False


def find_whatsapp_page(context):
    """Return the first page of the context already showing WhatsApp Web."""
    for page in context.pages:
        if WHATSAPP_URL in page.url:
            return page
    return None


class WhatsAppWebClient:
    """Single-use WhatsApp Web session: build a new instance after a disconnect."""

    def __init__(self,
                 session_dir=WA_SESSION_DIR,
                 headless=HEADLESS,
                 chrome_path=CHROME_PATH,
                 cdp_url=CDP_URL,
                 protocol_timeout=WA_PROTOCOL_TIMEOUT,
                 poll_interval=WA_POLL_INTERVAL):
        self.session_dir = session_dir
        self.headless = headless
        self.chrome_path = chrome_path
        self.cdp_url = cdp_url
        self.protocol_timeout = protocol_timeout
        self.poll_interval = poll_interval

        self.info = None
        self.page = None

        self._handlers = defaultdict(list)
        self._loop = None
        self._thread = None
        self._dispatcher = None
        self._playwright = None
        self._browser = None
        self._context = None
        self._watch_task = None
        self._logged_out = False

    # ==================== EVENTS ====================

    def on(self, event, handler):
        if event not in EVENTS:
            raise ValueError(f"Unknown WhatsApp client event: {event}")
        self._handlers[event].append(handler)

    def _emit(self, event, *args):
        if self._dispatcher is None:
            return
        for handler in list(self._handlers[event]):
            self._dispatcher.submit(self._run_handler, event, handler, args)

    @staticmethod
    def _run_handler(event, handler, args):
        try:
            handler(*args)
        except Exception:
            logger.exception(f"❌ Handler for '{event}' failed")

    # ==================== LIFECYCLE ====================

    @property
    def is_running(self):
        return self._loop is not None and self._loop.is_running()

    def initialize(self):
        """Start the browser in the background; progress is reported through events."""
        if self._thread is not None:
            return
        self._loop = asyncio.new_event_loop()
        self._dispatcher = ThreadPoolExecutor(max_workers=1, thread_name_prefix="whatsapp-events")
        self._thread = threading.Thread(target=self._loop.run_forever, name="whatsapp-client", daemon=True)
        self._thread.start()

        future = asyncio.run_coroutine_threadsafe(self._initialize(), self._loop)
        future.add_done_callback(self._log_initialize_error)

    @staticmethod
    def _log_initialize_error(future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"❌ Error initializing WhatsApp client: {error}")

    async def _initialize(self):
        logger.info("🚀 Starting WhatsApp Web client")
        self._playwright = await async_playwright().start()

        if self.cdp_url and await asyncio.to_thread(is_cdp_available, self.cdp_url):
            logger.info(f"🔌 Attaching to Chrome at {self.cdp_url}")
            self._browser = await self._playwright.chromium.connect_over_cdp(self.cdp_url)
            if self._browser.contexts:
                self._context = self._browser.contexts[0]
            else:
                self._context = await self._browser.new_context(user_agent=USER_AGENT)
            self.page = find_whatsapp_page(self._context)
        else:
            if self.cdp_url:
                logger.warning(f"⚠️ Chrome DevTools not reachable at {self.cdp_url}, launching Chromium")
            os.makedirs(self.session_dir, exist_ok=True)
            self._context = await self._playwright.chromium.launch_persistent_context(
                self.session_dir,
                headless=self.headless,
                executable_path=self.chrome_path,
                user_agent=USER_AGENT,
                args=BROWSER_ARGS,
            )
            if self._context.pages:
                self.page = self._context.pages[0]

        if self.page is None:
            self.page = await self._context.new_page()
        self.page.set_default_timeout(self.protocol_timeout * 1000)

        if WHATSAPP_URL not in self.page.url:
            await self.page.goto(WHATSAPP_URL, wait_until="domcontentloaded")
        logger.info(f"🌐 WhatsApp Web opened: {self.page.url}")

        self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    async def _watch(self):
        """Poll the page and translate what it shows into client events."""
        phase = "starting"
        last_qr = None
        last_loading = None

        while True:
            try:
                snapshot = await self.page.evaluate(client_js.JS_PAGE_STATE)
            except PlaywrightError as e:
                if self.page.is_closed():
                    logger.warning("🔌 WhatsApp Web page closed")
                    self.info = None
                    self._emit("disconnected", "NAVIGATION")
                    return
                # Execution context is replaced while WhatsApp Web reloads
                logger.debug(f"Page state unavailable: {e}")
                await asyncio.sleep(self.poll_interval)
                continue

            qr = snapshot.get("qr")
            loading = snapshot.get("loading")
            chat_list = snapshot.get("chatList")

            if phase == "ready":
                if qr:
                    logger.warning("🔌 QR code shown again, session ended")
                    self.info = None
                    self._emit("disconnected", "LOGOUT")
                    return
            elif qr:
                if phase == "authenticating":
                    self._emit("auth_failure", "Falha ao restaurar a sessão")
                    last_qr = None
                    last_loading = None
                if qr != last_qr:
                    last_qr = qr
                    self._emit("qr", qr)
                phase = "qr"
            elif loading or chat_list:
                if phase != "authenticating":
                    phase = "authenticating"
                    self._emit("authenticated")
                if loading and loading != last_loading:
                    last_loading = loading
                    self._emit("loading_screen", loading.get("percent", 0), loading.get("message", ""))
                if chat_list and await self._expose_store():
                    me = await self.page.evaluate(client_js.JS_GET_ME)
                    self.info = SessionInfo(name=me.get("name") or "", phone=me.get("phone") or "")
                    phase = "ready"
                    self._emit("ready", self.info)

            await asyncio.sleep(self.poll_interval)

    async def _expose_store(self):
        try:
            return bool(await self.page.evaluate(client_js.JS_EXPOSE_STORE))
        except PlaywrightError as e:
            logger.debug(f"Store not exposed yet: {e}")
            return False

    def _cancel_watch(self):
        if self._watch_task is not None and not self._watch_task.done():
            self._watch_task.cancel()
        self._watch_task = None

    def logout(self):
        """Log this device out of WhatsApp; no-op when nothing is logged in."""
        if not self.is_running:
            return
        self._call(self._logout())

    async def _logout(self):
        self._cancel_watch()
        self._logged_out = True
        self.info = None
        if self.page is None or self.page.is_closed():
            return
        try:
            await self.page.evaluate(client_js.JS_LOGOUT)
        except PlaywrightError as e:
            logger.warning(f"⚠️ Logout inside WhatsApp Web failed: {e}")

    def destroy(self):
        """Close the browser and stop the loop thread."""
        if not self.is_running:
            return
        try:
            self._call(self._close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=10)
            self._dispatcher.shutdown(wait=False)
            self._loop = None
            self.page = None
            self.info = None

        if self._logged_out and not self.cdp_url:
            shutil.rmtree(self.session_dir, ignore_errors=True)
            logger.info(f"🧹 Removed session data at {self.session_dir}")

    async def _close(self):
        self._cancel_watch()
        try:
            if self._browser is not None:
                # Only detaches; an externally started Chrome keeps running
                await self._browser.close()
            elif self._context is not None:
                await self._context.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()

    # ==================== DATA ACCESS ====================

    def _call(self, coro):
        if not self.is_running:
            coro.close()
            raise ClientNotInitialized("WhatsApp client is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=self.protocol_timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    async def _require_store(self):
        if self.page is None:
            raise ClientNotInitialized("WhatsApp Web page is not open")
        if not await self._expose_store():
            raise TransientRetrievalFailure("WhatsApp Web store is not available yet")

    def get_chats(self):
        return self._call(self._get_chats())

    async def _get_chats(self):
        await self._require_store()
        chats = await self.page.evaluate(client_js.JS_GET_CHATS)
        return [Chat.from_dict(c) for c in chats or []]

    def get_chat_by_id(self, chat_id):
        return self._call(self._get_chat_by_id(chat_id))

    async def _get_chat_by_id(self, chat_id):
        await self._require_store()
        chat = await self.page.evaluate(client_js.JS_GET_CHAT, chat_id)
        return Chat.from_dict(chat) if chat else None

    def get_contact_by_id(self, contact_id):
        return self._call(self._get_contact_by_id(contact_id))

    async def _get_contact_by_id(self, contact_id):
        await self._require_store()
        contact = await self.page.evaluate(client_js.JS_GET_CONTACT, contact_id)
        return Contact.from_dict(contact) if contact else None

    def evaluate(self, script, arg=None):
        """Evaluate a JavaScript function inside the WhatsApp Web page."""
        return self._call(self._evaluate(script, arg))

    async def _evaluate(self, script, arg):
        if self.page is None:
            raise ClientNotInitialized("WhatsApp Web page is not open")
        if arg is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, arg)
