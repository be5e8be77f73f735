"""Link state controller for WAN simulation.

This module defines the LinkStateController class, the only writer of link
operational state. A link is either UP or DOWN; a DOWN link carries nothing
in either direction.
"""

import logging
from typing import List

from wan_sim.core.enums import LinkState
from wan_sim.core.topology import Topology

logger = logging.getLogger(__name__)


class LinkStateController:
    """Tracks and toggles the operational state of every link.

    Attributes:
        topology: Topology whose links are controlled.
        transitions: Number of state changes applied so far.
    """

    def __init__(self, topology: Topology):
        """Initialize the controller with every link UP.

        Args:
            topology: Topology whose links are controlled.
        """
        self.topology = topology
        self.transitions = 0
        for link in topology.links:
            link.state = LinkState.UP

    def _link(self, link_id: int):
        if not 0 <= link_id < len(self.topology.links):
            raise IndexError(f"Link {link_id} does not exist")
        return self.topology.links[link_id]

    def state(self, link_id: int) -> LinkState:
        return self._link(link_id).state

    def is_up(self, link_id: int) -> bool:
        return self._link(link_id).state is LinkState.UP

    def set_state(self, link_id: int, state: LinkState) -> bool:
        """Set the state of a link for both of its endpoints.

        Args:
            link_id: Link to change.
            state: New state.

        Returns:
            True if the state changed, False if the link was already in it.
        """
        link = self._link(link_id)
        state = LinkState.parse(state)
        if link.state is state:
            logger.debug(
                "Link %s already %s", self.topology.link_name(link_id), state.value
            )
            return False
        link.state = state
        self.transitions += 1
        if state is LinkState.DOWN:
            logger.info("Link %s is DOWN", self.topology.link_name(link_id))
        else:
            logger.info("Link %s is UP", self.topology.link_name(link_id))
        return True

    def down_links(self) -> List[int]:
        return [link.id for link in self.topology.links if link.state is LinkState.DOWN]
