"""Global FastAPI dependencies for owner identity and service wiring.

Authentication happens upstream: the gateway verifies the caller and forwards
the owner id in the X-User-ID header. This module only parses it.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .documents.service import DocumentLifecycleService
from .domain.documents.ports import DeliveryPort
from .infrastructure.delivery import HtmlArtifactRenderer, PdfArtifactRenderer, SmtpDeliveryAdapter
from .infrastructure.repositories import SqlAlchemyDocumentStore
from .profiles.service import OwnerProfileService
from .templates.service import TemplateService


def get_owner_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> UUID:
    """Owner id of the current request.

    Raises:
        HTTPException 401: Header missing or not a UUID
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header must be a UUID",
        )


def get_exporter(settings: Settings = Depends(get_settings)) -> DeliveryPort:
    """File exporter for the configured EXPORT_FORMAT."""
    if settings.EXPORT_FORMAT == "html":
        return HtmlArtifactRenderer()
    return PdfArtifactRenderer()


def get_delivery(
    settings: Settings = Depends(get_settings),
    exporter: DeliveryPort = Depends(get_exporter)
) -> DeliveryPort:
    """SMTP delivery when a mail server is configured, export only otherwise."""
    if settings.SMTP_HOST:
        return SmtpDeliveryAdapter(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            sender=settings.SMTP_SENDER,
            use_tls=settings.SMTP_USE_TLS,
            exporter=exporter,
        )
    return exporter


def get_document_service(
    db: Session = Depends(get_db),
    delivery: DeliveryPort = Depends(get_delivery),
    settings: Settings = Depends(get_settings)
) -> DocumentLifecycleService:
    return DocumentLifecycleService(SqlAlchemyDocumentStore(db), delivery=delivery, settings=settings)


def get_template_service(db: Session = Depends(get_db)) -> TemplateService:
    return TemplateService(SqlAlchemyDocumentStore(db))


def get_profile_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> OwnerProfileService:
    return OwnerProfileService(SqlAlchemyDocumentStore(db), settings=settings)
