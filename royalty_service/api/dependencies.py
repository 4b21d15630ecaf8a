"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from royalty_service.config import Settings
from royalty_service.infrastructure.clients.mailbox import MailboxClient
from royalty_service.infrastructure.database.session import get_db
from royalty_service.services.statements import StatementService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings(request: Request) -> Settings:
    """Settings built by the application factory"""
    return request.app.state.settings


def get_user_id(x_user_id: str = Header(..., alias="X-User-ID", min_length=1)) -> str:
    """Authenticated user identity, resolved upstream and forwarded as a header"""
    return x_user_id


def get_statement_service(db: Session = Depends(get_db)) -> StatementService:
    return StatementService(db)


def get_mailbox_client_factory(settings: Settings = Depends(get_settings)):
    """Provide a callable that builds a Gmail client for a bearer token"""

    def build(access_token: str) -> MailboxClient:
        return MailboxClient(access_token, settings)

    return build
