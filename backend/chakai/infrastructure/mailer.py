from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from ..domain.errors import NotificationError
from ..domain.repositories import NotificationGateway

logger = logging.getLogger(__name__)


class SesNotificationGateway(NotificationGateway):
    """Sends one SES message per call with every recipient in BCC."""

    def __init__(self, *, sender: str, region: str, client: Any | None = None) -> None:
        self.sender = sender
        self.region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("ses", region_name=self.region)
        return self._client

    def build_request(self, recipients: list[str], subject: str, body: str) -> dict[str, Any]:
        return {
            "Source": self.sender,
            "Destination": {"BccAddresses": list(recipients)},
            "Message": {
                "Subject": {"Charset": "UTF-8", "Data": subject},
                "Body": {"Text": {"Charset": "UTF-8", "Data": body}},
            },
        }

    async def send_bulk_email(self, recipients: list[str], subject: str, body: str) -> str:
        request = self.build_request(recipients, subject, body)
        try:
            response = await run_in_threadpool(self.client.send_email, **request)
        except (BotoCoreError, ClientError) as exc:
            logger.error("bulk email failed for %d recipients: %s", len(recipients), exc)
            raise NotificationError("failed to send email") from exc
        message_id = str(response["MessageId"])
        logger.info("bulk email sent to %d recipients, message_id=%s", len(recipients), message_id)
        return message_id
