"""Errors raised while talking to WhatsApp Web."""


class WhatsAppError(Exception):
    """Base class for every error raised by the whatsapp package."""


class ClientNotInitialized(WhatsAppError):
    """The browser client was used before initialize() or after destroy()."""


class NotConnected(WhatsAppError):
    """The session is not Ready; the user has to scan the QR code again."""


class GroupNotFound(WhatsAppError):
    """The identifier does not resolve to a group conversation."""

    def __init__(self, group_id):
        super().__init__(f"Group not found: {group_id}")
        self.group_id = group_id


class TransientRetrievalFailure(WhatsAppError):
    """A retrieval path failed in a way a retry or the fallback may fix."""


class UpstreamFailure(WhatsAppError):
    """Both the primary and the fallback retrieval paths failed."""
