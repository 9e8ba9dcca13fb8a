"""Agent Rig — install, update and remove opinionated agent environments."""

__version__ = "0.1.0"
