"""Exceptions raised while building a simulated WAN."""


class DuplicateConnection(ValueError):
    """Raised when two sites are connected more than once."""

    def __init__(self, site_a: str, site_b: str):
        super().__init__(f"Sites {site_a} and {site_b} are already connected")
        self.site_a = site_a
        self.site_b = site_b


class UnreachableNetwork(ValueError):
    """Raised by a strict route build when a network cannot be reached."""

    def __init__(self, site: str, network: str):
        super().__init__(f"Network {network} is unreachable from site {site}")
        self.site = site
        self.network = network
