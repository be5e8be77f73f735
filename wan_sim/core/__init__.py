"""Core components for static-routing WAN simulation.

This module contains the topology model, the routing table builder, the link
state controller, the forwarding engine and the event-driven simulator.
"""
