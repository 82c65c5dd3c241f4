from .mail_transport import (
    MailTransport,
    SmtpMailTransport,
    OutgoingEmail,
    SendResult,
    strip_html,
)
from .templates import render_review_request, review_request_subject
