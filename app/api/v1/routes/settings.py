"""Platform settings routes."""

from fastapi import APIRouter

from app.core.config import settings
from app.core.deps import NotifierDep, SuperAdmin
from app.schemas.school import EmailCheckRequest, MessageResponse
from app.services.notifications import send_test_email

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.post("/test-email", response_model=MessageResponse)
async def check_email_connection(
    request_data: EmailCheckRequest,
    notifier: NotifierDep,
    current_user: SuperAdmin,
) -> MessageResponse:
    """
    Send a test email through the configured SMTP server.

    Delivery failures return 502 with the transport error.
    """
    await send_test_email(notifier, request_data.to, settings.APP_NAME)
    return MessageResponse(message="Email test successful! Check your inbox for the test email.")
