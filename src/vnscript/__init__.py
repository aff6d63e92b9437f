"""Scenario script model, playback state machine and reachability analyzer."""

__version__ = "0.1.0"
