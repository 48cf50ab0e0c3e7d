"""
Group membership with per-member name lookup and an in-page fallback.
"""

from utils import report
from whatsapp.errors import GroupNotFound, UpstreamFailure
from whatsapp.models import GROUP_DEFAULT_NAME, GroupMembers, Member

logger = report.settings(__file__)

JS_STORE_PARTICIPANTS = r"""
async (groupId) => {
    const store = window.Store;
    if (!store || !store.Chat) return null;

    const chat = store.Chat.get(groupId);
    if (!chat || !chat.isGroup) return null;

    // Metadata is loaded lazily; ask for a refresh when it looks empty
    const meta0 = chat.groupMetadata;
    if (!meta0 || !meta0.participants || meta0.participants.length === 0) {
        try {
            if (store.GroupMetadata && store.GroupMetadata.update) {
                await store.GroupMetadata.update(groupId);
            }
        } catch (e) { }
    }

    const meta = chat.groupMetadata;
    const name = chat.name || chat.formattedTitle || '';
    if (!meta || !meta.participants) return { name, participants: [] };

    const models = typeof meta.participants.getModelsArray === 'function'
        ? meta.participants.getModelsArray()
        : (meta.participants._models || meta.participants || []);

    const participants = [];
    for (const p of models) {
        let contactName = '';
        try {
            const contact = store.Contact.get(p.id._serialized || p.id.toString());
            if (contact) {
                contactName = contact.pushname || contact.name || contact.shortName || contact.formattedName || '';
            }
        } catch (e) { }

        participants.push({
            user: p.id.user,
            name: contactName,
            isAdmin: !!p.isAdmin,
            isSuperAdmin: !!p.isSuperAdmin
        });
    }
    return { name, participants };
}
"""


class ClientGroupResolver:
    """Membership from the client's chat lookup, one contact lookup per member."""

    def __init__(self, client):
        self.client = client

    def resolve_group(self, group_id):
        logger.info(f"👥 Fetching chat: {group_id}")
        chat = self.client.get_chat_by_id(group_id)
        if chat is None or not chat.is_group:
            logger.info(f"❌ Chat not found or not a group: {group_id}")
            raise GroupNotFound(group_id)

        members = [
            Member(
                phone=participant.user,
                name=self._contact_name(participant.id),
                is_admin=participant.is_admin,
                is_owner=participant.is_super_admin,
            )
            for participant in chat.participants
        ]
        return GroupMembers(name=chat.name or GROUP_DEFAULT_NAME, members=members)

    def _contact_name(self, contact_id):
        try:
            contact = self.client.get_contact_by_id(contact_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not fetch contact {contact_id}: {e}")
            return ""
        return contact.display_name if contact else ""


class StoreProbeGroupResolver:
    """Membership read straight from window.Store inside the page."""

    def __init__(self, client):
        self.client = client

    def resolve_group(self, group_id):
        data = self.client.evaluate(JS_STORE_PARTICIPANTS, group_id)
        if not data:
            raise GroupNotFound(group_id)

        members = [
            Member(
                phone=row.get("user") or "",
                name=row.get("name") or "",
                is_admin=bool(row.get("isAdmin")),
                is_owner=bool(row.get("isSuperAdmin")),
            )
            for row in data.get("participants") or []
        ]
        return GroupMembers(name=data.get("name") or GROUP_DEFAULT_NAME, members=members)


class ParticipantResolver:

    def __init__(self, primary, fallback):
        self.primary = primary
        self.fallback = fallback

    def get_members(self, group_id):
        """Return the group's members, admins first; raises GroupNotFound or UpstreamFailure."""
        try:
            group = self.primary.resolve_group(group_id)
        except GroupNotFound:
            raise
        except Exception as e:
            logger.error(f"❌ Error fetching participants through the client: {e}")
            logger.info("👥 Trying Store fallback...")
            try:
                group = self.fallback.resolve_group(group_id)
            except GroupNotFound:
                raise
            except Exception as fallback_error:
                logger.error(f"❌ Store fallback failed: {fallback_error}")
                raise UpstreamFailure(f"Could not fetch participants of {group_id}") from fallback_error

        group.members.sort(key=lambda member: member.sort_key)
        logger.info(f"👥 Contacts found: {len(group.members)}")
        return group


def get_members(client, group_id):
    """Resolve a group's membership through the default retrieval chain."""
    resolver = ParticipantResolver(ClientGroupResolver(client), StoreProbeGroupResolver(client))
    return resolver.get_members(group_id)
