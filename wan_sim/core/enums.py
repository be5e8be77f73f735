"""Enumerations for WAN simulation.

This module defines enumerations used throughout the WAN simulator.
"""

from enum import Enum


class LinkState(Enum):
    """Operational state of a point-to-point link.

    Attributes:
        UP: Forwarding enabled in both directions.
        DOWN: Forwarding disabled in both directions.
    """

    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, value: "str | LinkState") -> "LinkState":
        """Convert a case-insensitive state name into a LinkState.

        Args:
            value: "up"/"down" (any case) or a LinkState.

        Returns:
            The matching LinkState.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown link state: {value!r}") from None


class EventKind(Enum):
    """Kinds of scheduled events and of records in the outcome log.

    Attributes:
        SET_LINK_STATE: A link is set UP or DOWN.
        SEND_PACKET: A site sends a packet.
        ECHO_REPLY: A destination answers an echo request.
    """

    SET_LINK_STATE = "SetLinkState"
    SEND_PACKET = "SendPacket"
    ECHO_REPLY = "EchoReply"


class DropReason(Enum):
    """Reasons a packet can be dropped by the forwarding engine.

    Attributes:
        NO_ROUTE: No routing entry matches the destination.
        LINK_DOWN: The selected egress link is DOWN.
        TTL_EXPIRED: The packet exceeded the hop limit.
    """

    NO_ROUTE = "NoRoute"
    LINK_DOWN = "LinkDown"
    TTL_EXPIRED = "TtlExpired"
