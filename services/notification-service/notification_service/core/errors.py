from __future__ import annotations

from shared.contracts import ChoreographyError, ErrorCategory


class RecipientUnavailableError(ChoreographyError):
    def __init__(self, message: str) -> None:
        super().__init__(
            ErrorCategory.RECIPIENT_UNAVAILABLE, message, http_status=503, retryable=True
        )


class MailTransportError(ChoreographyError):
    def __init__(self, message: str = "Mail transport failed", *, retryable: bool = True) -> None:
        super().__init__(
            ErrorCategory.MAIL_TRANSPORT, message, http_status=502, retryable=retryable
        )


class TemplateRenderError(ChoreographyError):
    def __init__(self, template: str, message: str) -> None:
        super().__init__(
            ErrorCategory.TEMPLATE_RENDER,
            f"Template {template} failed to render: {message}",
            http_status=500,
        )
