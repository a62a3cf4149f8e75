"""Time-driven escalation of unresolved tenant work orders."""

__version__ = "0.1.0"
