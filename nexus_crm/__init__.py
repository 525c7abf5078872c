"""Nexus CRM - local-first sync and automation engine."""

__version__ = "0.1.0"
