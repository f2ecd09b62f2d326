"""
Security module for Meta webhook authentication.

Implements the webhook subscription handshake (verify token) and the
X-Hub-Signature-256 payload signature check.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from . import config

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"


def get_client_ip(request: Request) -> str:
    """Extract real client IP from request, handling proxies and load balancers."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, use the first one
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()

    return str(request.client.host) if request.client else "unknown"


def log_security_event(
    event_type: str,
    ip_address: str,
    details: Dict[str, Any],
    severity: str = "WARNING"
) -> None:
    """Log security events with structured data for monitoring and analysis."""
    log_entry = {
        "event": event_type,
        "ip": ip_address,
        "severity": severity,
        **details
    }

    if severity == "ERROR":
        logger.error(f"[SECURITY] {log_entry}")
    elif severity == "INFO":
        logger.info(f"[SECURITY] {log_entry}")
    else:
        logger.warning(f"[SECURITY] {log_entry}")


def verify_subscription(mode: Optional[str], token: Optional[str]) -> bool:
    """Meta's GET handshake: mode must be 'subscribe' and the token must match."""
    return (
        mode == "subscribe"
        and bool(config.META_VERIFY_TOKEN)
        and token == config.META_VERIFY_TOKEN
    )


def compute_signature(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def validate_signature(request: Request, body: bytes) -> bool:
    """Check X-Hub-Signature-256 against META_APP_SECRET.

    Skipped (returns True) when no app secret is configured.

    Raises:
        HTTPException: 403 if the signature is missing or wrong.
    """
    if not config.META_APP_SECRET:
        return True

    provided = request.headers.get(SIGNATURE_HEADER, "")
    expected = compute_signature(body, config.META_APP_SECRET)
    if not provided or not hmac.compare_digest(provided, expected):
        log_security_event(
            "signature_mismatch" if provided else "signature_missing",
            get_client_ip(request),
            {"user_agent": request.headers.get('User-Agent', 'unknown')},
            severity="ERROR",
        )
        raise HTTPException(status_code=403, detail="Invalid signature")
    return True
