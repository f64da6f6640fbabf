from __future__ import annotations

from collections.abc import Mapping

from twilio.request_validator import RequestValidator

from config.settings import Settings


def is_valid_twilio_request(
    settings: Settings,
    *,
    url: str,
    params: Mapping[str, str],
    signature: str | None,
) -> bool:
    """Check the X-Twilio-Signature header of a webhook request."""

    if not settings.twilio_auth_token:
        raise ValueError("TWILIO_AUTH_TOKEN is required to validate webhook signatures")
    if not signature:
        return False
    validator = RequestValidator(settings.twilio_auth_token)
    return bool(validator.validate(url, dict(params), signature))
