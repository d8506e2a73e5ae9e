"""
Relay Presence - connection identity and room membership

PresenceGateway authenticates each real-time connection and binds an
immutable Identity to it. ConnectionHub tracks which live connections sit in
which room:

    user_<customerId>   customer room (the customer's tabs plus any agents)
    staff               every staff connection, joined automatically

Transport specifics stay outside: a Connection subclass only implements
_transmit() for its frame format.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from errors import AuthError
from services.auth_tokens import verify_access_token

logger = logging.getLogger(__name__)

STAFF_ROOM = "staff"


def customer_room(customer_id: str) -> str:
    return f"user_{customer_id}"


class Role(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"


@dataclass(frozen=True)
class Identity:
    """Authenticated user behind a connection."""

    user_id: str
    username: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role == Role.STAFF

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER

    @classmethod
    def from_claims(cls, claims: dict) -> "Identity":
        return cls(
            user_id=str(claims["id"]),
            username=str(claims.get("username") or ""),
            role=Role(claims["role"]),
        )


@dataclass
class Handshake:
    """Credential sources presented when a connection opens.

    Checked in order: explicit token (query string or auth payload),
    ``Authorization: Bearer`` header, then the auth cookie.
    """

    token: Optional[str] = None
    authorization: Optional[str] = None
    cookies: Dict[str, str] = field(default_factory=dict)

    COOKIE_NAME = "authToken"

    def credential(self) -> Optional[str]:
        if self.token:
            return self.token.strip() or None
        if self.authorization:
            scheme, _, value = self.authorization.partition(" ")
            if scheme.lower() == "bearer" and value.strip():
                return value.strip()
        cookie = self.cookies.get(self.COOKIE_NAME)
        return cookie.strip() if cookie else None


class Connection:
    """A live real-time session bound to exactly one identity.

    ``agent_for`` is set when a staff connection has claimed a customer's
    conversation.
    """

    def __init__(self, identity: Identity, connection_id: Optional[str] = None):
        self._identity = identity
        self.connection_id = connection_id or f"conn_{uuid.uuid4().hex[:12]}"
        self.agent_for: Optional[str] = None
        self.agent_name: Optional[str] = None
        self.rooms: Set[str] = set()
        self.closed = False

    @property
    def identity(self) -> Identity:
        return self._identity

    def __repr__(self) -> str:
        return f"<Connection {self.connection_id} {self._identity.role.value}:{self._identity.user_id}>"

    async def send(self, event: str, data: dict) -> bool:
        """Best-effort delivery of one event. Returns False if the transport failed."""
        if self.closed:
            return False
        try:
            await self._transmit({"event": event, "data": data})
            return True
        except Exception as e:
            logger.debug(f"Send failed on {self.connection_id} ({event}): {e}")
            self.closed = True
            return False

    async def _transmit(self, frame: dict) -> None:
        raise NotImplementedError


class ConnectionHub:
    """In-process room membership and fan-out."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Dict[str, Connection]] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def register(self, conn: Connection) -> None:
        self._connections[conn.connection_id] = conn

    def unregister(self, conn: Connection) -> None:
        for room in list(conn.rooms):
            self.leave(conn, room)
        self._connections.pop(conn.connection_id, None)

    def join(self, conn: Connection, room: str) -> None:
        self._rooms.setdefault(room, {})[conn.connection_id] = conn
        conn.rooms.add(room)

    def leave(self, conn: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.pop(conn.connection_id, None)
            if not members:
                del self._rooms[room]
        conn.rooms.discard(room)

    def members(self, room: str) -> List[Connection]:
        return list(self._rooms.get(room, {}).values())

    def connections_for_customer(self, customer_id: str) -> List[Connection]:
        """Live customer connections authenticated as this customer id, in any room."""
        return [
            c for c in self._connections.values()
            if c.identity.is_customer and c.identity.user_id == customer_id
        ]

    async def send_to(self, connections: Iterable[Connection], event: str, data: dict) -> int:
        """Deliver to each distinct connection once. Returns successful deliveries."""
        seen: Set[str] = set()
        delivered = 0
        for conn in connections:
            if conn.connection_id in seen:
                continue
            seen.add(conn.connection_id)
            if await conn.send(event, data):
                delivered += 1
        return delivered

    async def broadcast(self, room: str, event: str, data: dict, exclude: Optional[Connection] = None) -> int:
        targets = [c for c in self.members(room) if exclude is None or c.connection_id != exclude.connection_id]
        return await self.send_to(targets, event, data)

    def stats(self) -> Dict[str, int]:
        staff = sum(1 for c in self._connections.values() if c.identity.is_staff)
        return {"connections": len(self._connections), "staff": staff, "rooms": len(self._rooms)}


class PresenceGateway:
    """Authenticates connections and keeps the hub's membership current.

    Args:
        hub: Room membership shared with the chat router
        verify: Token verifier returning {id, username, role} claims
    """

    def __init__(self, hub: ConnectionHub, verify: Callable[[str], dict] = verify_access_token):
        self.hub = hub
        self._verify = verify

    def authenticate(self, handshake: Handshake) -> Identity:
        """Resolve the handshake's credential to an Identity.

        Raises:
            AuthError: "missing" with no credential, "invalid" when verification fails
        """
        token = handshake.credential()
        if not token:
            raise AuthError("missing", details="Authentication required")
        claims = self._verify(token)
        try:
            return Identity.from_claims(claims)
        except (KeyError, ValueError) as e:
            raise AuthError("invalid", details="Invalid token") from e

    def attach(self, conn: Connection) -> None:
        """Register a freshly authenticated connection. Staff auto-join the staff room."""
        self.hub.register(conn)
        if conn.identity.is_staff:
            self.hub.join(conn, STAFF_ROOM)
        logger.info(
            f"Connected {conn.connection_id} as {conn.identity.username or conn.identity.user_id} "
            f"({conn.identity.role.value})"
        )

    def detach(self, conn: Connection) -> None:
        self.hub.unregister(conn)
        logger.info(f"Disconnected {conn.connection_id}")
