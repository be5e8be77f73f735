"""Traffic generation for WAN simulation.

This module provides the fixed-interval traffic flows that inject packets
into the simulated network.
"""
