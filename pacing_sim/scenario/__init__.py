"""Scenario configuration and orchestration.

This module contains the scenario dataclasses, the built-in presets and the
ScenarioDriver that wires generators to sinks and runs them.
"""
