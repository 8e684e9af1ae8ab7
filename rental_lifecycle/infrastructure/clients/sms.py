"""Twilio SMS dispatcher"""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

import httpx

from rental_lifecycle.config import settings
from rental_lifecycle.domain.exceptions import DispatchError
from rental_lifecycle.domain.models import SendResult
from rental_lifecycle.utils.phone import mask_phone, normalize_phone_e164

logger = logging.getLogger(__name__)

# Twilio error code for a recipient who replied STOP
UNSUBSCRIBED_RECIPIENT = 21610


class TwilioDispatcher:
    """Sends SMS through the Twilio Messages REST API"""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        messaging_service_sid: str | None = None,
        from_number: str | None = None,
        simulate: bool | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid or settings.twilio_account_sid
        self.auth_token = auth_token or settings.twilio_auth_token
        self.messaging_service_sid = messaging_service_sid or settings.twilio_messaging_service_sid
        self.from_number = from_number or settings.twilio_from_number
        self.simulate = settings.sms_simulate if simulate is None else simulate
        self.base_url = (base_url or settings.twilio_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def is_configured(self) -> bool:
        """Credentials and a sender are present (always true when simulating)"""
        if self.simulate:
            return True
        return bool(self.account_sid and self.auth_token and (self.messaging_service_sid or self.from_number))

    async def send(self, to: str, body: str, tag: str, meta: Optional[Dict[str, Any]] = None) -> SendResult:
        """
        Send one SMS.

        Raises:
            DispatchError: On timeout, network failure or a rejected message
        """
        recipient = normalize_phone_e164(to)
        log_extra = {"to": mask_phone(recipient), "tag": tag, **(meta or {})}

        if self.simulate:
            sid = f"SIMULATED-{uuid4().hex[:24]}"
            logger.info("SMS simulated", extra={**log_extra, "sid": sid})
            return SendResult(sid=sid, status="simulated", simulated=True)

        form = {"To": recipient, "Body": body}
        if self.messaging_service_sid:
            form["MessagingServiceSid"] = self.messaging_service_sid
        else:
            form["From"] = self.from_number
        if settings.sms_status_callback_url:
            form["StatusCallback"] = settings.sms_status_callback_url

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json",
                    data=form,
                    auth=(self.account_sid, self.auth_token),
                )
                data = response.json()
            except httpx.TimeoutException as e:
                raise DispatchError(f"SMS provider timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise DispatchError(f"SMS provider network error: {e}") from e
            except ValueError as e:
                raise DispatchError(f"Invalid SMS provider response: {e}") from e

        if response.status_code >= 400:
            if data.get("code") == UNSUBSCRIBED_RECIPIENT:
                logger.warning("SMS recipient unsubscribed", extra=log_extra)
                return SendResult(status="unsubscribed", skipped=True, reason="unsubscribed")
            raise DispatchError(
                f"SMS provider error: {response.status_code} {data.get('code')} {data.get('message')}"
            )

        logger.info("SMS sent", extra={**log_extra, "sid": data.get("sid"), "status": data.get("status")})
        return SendResult(sid=data.get("sid"), status=data.get("status"))
