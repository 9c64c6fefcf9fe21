"""Dependency injection for FastAPI endpoints"""

import uuid
from fastapi import HTTPException, Request
from land_ledger.infrastructure.clients.audit import AuditClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_audit_client() -> AuditClient:
    """Provide audit webhook client instance"""
    return AuditClient()


def parse_uuid(value: str, kind: str) -> uuid.UUID:
    """Path/body identifier to UUID, 400 on malformed input"""
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {kind} ID format")
