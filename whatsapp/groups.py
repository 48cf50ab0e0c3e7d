"""
Group listing with bounded retries and an in-page fallback.

Right after "ready" the chat index of WhatsApp Web is still filling up, so an
empty answer is retried with a linear backoff before falling back to reading
window.Store directly.
"""

import time

from config import GROUP_FETCH_ATTEMPTS, GROUP_RETRY_BACKOFF
from utils import report
from whatsapp.models import GROUP_PLACEHOLDER_NAME, GroupSummary

logger = report.settings(__file__)

JS_STORE_GROUPS = r"""
() => {
    const store = window.Store;
    if (!store || !store.Chat) return [];

    const models = typeof store.Chat.getModelsArray === 'function'
        ? store.Chat.getModelsArray()
        : (store.Chat._models || []);

    const result = [];
    models.forEach(chat => {
        if (!chat.isGroup) return;
        const meta = chat.groupMetadata;
        result.push({
            id: chat.id._serialized || chat.id.toString(),
            name: chat.name || chat.formattedTitle || '',
            participantCount: meta && meta.participants ? meta.participants.length : 0
        });
    });
    return result;
}
"""


class ClientGroupSource:
    """Groups from the client's own chat listing."""

    def __init__(self, client):
        self.client = client

    def enumerate_groups(self):
        chats = self.client.get_chats()
        logger.info(f"📋 Chats loaded: {len(chats)}")
        return [
            GroupSummary(
                id=chat.id,
                name=chat.name or GROUP_PLACEHOLDER_NAME,
                participant_count=chat.participant_count,
            )
            for chat in chats
            if chat.is_group
        ]


class StoreProbeGroupSource:
    """Groups read straight from window.Store inside the page."""

    def __init__(self, client):
        self.client = client

    def enumerate_groups(self):
        rows = self.client.evaluate(JS_STORE_GROUPS) or []
        return [
            GroupSummary(
                id=row["id"],
                name=row.get("name") or GROUP_PLACEHOLDER_NAME,
                participant_count=row.get("participantCount") or 0,
            )
            for row in rows
        ]


class GroupEnumerator:

    def __init__(self, primary, fallback,
                 max_attempts=GROUP_FETCH_ATTEMPTS,
                 backoff_seconds=GROUP_RETRY_BACKOFF,
                 sleep=time.sleep):
        self.primary = primary
        self.fallback = fallback
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def list_groups(self):
        """Return every group sorted by name; never raises."""
        groups = self._fetch()
        logger.info(f"📋 Groups returned: {len(groups)}")
        return sorted(groups, key=lambda group: group.name)

    def _fetch(self):
        for attempt in range(1, self.max_attempts + 1):
            logger.info(f"📋 Attempt {attempt}/{self.max_attempts} to fetch groups...")
            try:
                groups = self.primary.enumerate_groups()
                logger.info(f"📋 Groups found: {len(groups)}")
                if groups:
                    return groups
            except Exception as e:
                logger.error(f"❌ Error on attempt {attempt}: {e}")

            if attempt < self.max_attempts:
                delay = attempt * self.backoff_seconds
                logger.info(f"⏳ No groups yet, retrying in {delay:g}s...")
                self.sleep(delay)

        logger.info("📋 Trying direct Store access as a fallback...")
        try:
            groups = self.fallback.enumerate_groups()
        except Exception as e:
            logger.error(f"❌ Fallback failed too: {e}")
            return []
        logger.info(f"📋 Fallback found {len(groups)} groups")
        return groups


def list_groups(client, sleep=time.sleep):
    """List the groups of the logged-in account through the default retrieval chain."""
    enumerator = GroupEnumerator(ClientGroupSource(client), StoreProbeGroupSource(client), sleep=sleep)
    return enumerator.list_groups()
