"""
PII masking, HTML stripping, security headers and Meta signature checks.
"""

import hashlib
import hmac
import re
from typing import Optional

from fastapi import Request
from loguru import logger

_PHONE = re.compile(r"(?<!\d)1[3-9]\d{9}(?!\d)")
_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_ID_NUMBER = re.compile(r"(?<!\d)\d{17}[\dXx](?![\dXx])")
_CARD_NUMBER = re.compile(r"(?<!\d)\d{16,19}(?!\d)")
_HTML_TAG = re.compile(r"<[^>]*>")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def sanitize_message(message: str) -> str:
    """Mask phone numbers, e-mails, ID numbers and card numbers."""
    if not message:
        return message
    sanitized = _PHONE.sub("***-****-****", message)
    sanitized = _EMAIL.sub("***@***.***", sanitized)
    sanitized = _ID_NUMBER.sub("***-****-****-****-***", sanitized)
    return _CARD_NUMBER.sub("****-****-****-****", sanitized)


def strip_html(text: str) -> str:
    return _HTML_TAG.sub("", text) if text else text


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def verify_meta_signature(body: bytes, signature: Optional[str], app_secret: str) -> bool:
    """
    Check X-Hub-Signature-256 against an HMAC of the raw body.
    Without an app secret verification is skipped.
    """
    if not app_secret:
        logger.info("Skipping signature verification — META_APP_SECRET not configured")
        return True
    if not signature:
        logger.warning("Webhook request without X-Hub-Signature-256")
        return False

    expected = "sha256=" + hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature.strip().lower(), expected):
        logger.warning("Invalid webhook signature")
        return False
    return True
