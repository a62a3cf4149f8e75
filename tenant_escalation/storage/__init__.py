"""Database-backed collaborators for the escalation engine."""

from .directory import SQLAlchemyDirectoryResolver, build_directory_record
from .requests import SQLAlchemyRequestRepository, to_service_request

__all__ = [
    "SQLAlchemyDirectoryResolver",
    "SQLAlchemyRequestRepository",
    "build_directory_record",
    "to_service_request",
]
