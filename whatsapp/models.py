"""Data structures shared by the client, the services and the gateway."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

GROUP_PLACEHOLDER_NAME = "Grupo sem nome"
GROUP_DEFAULT_NAME = "Grupo"


class ConnectionState(Enum):
    """Process-wide state of the WhatsApp Web session."""
    STARTING = "starting"
    AWAITING_LOGIN = "awaiting_login"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


# -------------- Client-side records -----------------------------------------

@dataclass
class Participant:
    id: str
    user: str
    is_admin: bool = False
    is_super_admin: bool = False

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id", ""),
            user=data.get("user", ""),
            is_admin=bool(data.get("isAdmin")),
            is_super_admin=bool(data.get("isSuperAdmin")),
        )


@dataclass
class Chat:
    id: str
    name: str = ""
    is_group: bool = False
    participants: List[Participant] = field(default_factory=list)
    participant_count: int = 0
    timestamp: int = 0

    @classmethod
    def from_dict(cls, data):
        participants = [Participant.from_dict(p) for p in data.get("participants") or []]
        return cls(
            id=data.get("id", ""),
            name=data.get("name") or "",
            is_group=bool(data.get("isGroup")),
            participants=participants,
            participant_count=data.get("participantCount") or len(participants),
            timestamp=data.get("timestamp") or 0,
        )


@dataclass
class Contact:
    id: str
    pushname: str = ""
    name: str = ""
    short_name: str = ""

    @property
    def display_name(self):
        return self.pushname or self.name or self.short_name or ""

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id", ""),
            pushname=data.get("pushname") or "",
            name=data.get("name") or "",
            short_name=data.get("shortName") or "",
        )


@dataclass(frozen=True)
class SessionInfo:
    name: str
    phone: str

    def to_dict(self):
        return {"name": self.name, "phone": self.phone}


# -------------- Service results ---------------------------------------------

@dataclass
class GroupSummary:
    id: str
    name: str
    participant_count: int = 0

    def to_dict(self):
        return {"id": self.id, "name": self.name, "participantCount": self.participant_count}


@dataclass
class Member:
    phone: str
    name: str = ""
    is_admin: bool = False
    is_owner: bool = False

    @property
    def phone_formatted(self):
        return "+" + self.phone

    @property
    def sort_key(self):
        """Admins first, then by name, then by phone."""
        return (not self.is_admin, self.name or self.phone or "")

    def to_dict(self):
        return {
            "phone": self.phone,
            "phoneFormatted": self.phone_formatted,
            "name": self.name,
            "isAdmin": self.is_admin,
            "isSuperAdmin": self.is_owner,
        }


@dataclass
class GroupMembers:
    name: str
    members: List[Member] = field(default_factory=list)


@dataclass(frozen=True)
class Notification:
    type: str
    payload: Optional[object] = None
