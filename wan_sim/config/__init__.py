"""Scenario configuration for WAN simulation.

This module loads and saves YAML scenarios and builds simulators from them.
"""
