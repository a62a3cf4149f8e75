"""Outbound messaging connectors."""

from .email_smtp import SMTPEmailConnector

__all__ = [
    "SMTPEmailConnector",
]
