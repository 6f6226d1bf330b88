import logging
import os
from typing import TYPE_CHECKING, Any, Optional

import requests
from dotenv import load_dotenv
from sqlalchemy.orm import Session

from .outbox import mark_delivered, winner_payload
from ..models.event import DrawEvent

if TYPE_CHECKING:
    from ..draws.winner import WinnerSelection
    from ..models.draw import Draw

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """POSTs winner-selected events to ``WINNER_WEBHOOK_URL``."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        endpoint = url or os.getenv("WINNER_WEBHOOK_URL")
        if not endpoint:
            raise ValueError("Environment variable 'WINNER_WEBHOOK_URL' is not set")
        self.url = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    def _post(self, payload: dict[str, Any]) -> Any:
        r = self.session.request(
            method="POST",
            url=self.url,
            headers=self.headers,
            json=payload,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    def winner_selected(self, draw: "Draw", selection: "WinnerSelection") -> None:
        self._post(winner_payload(draw, selection))
        logger.info("Posted winner of draw %s to webhook", selection.draw_id)

    def deliver_pending(self, db: Session) -> int:
        """Send undelivered outbox events; stops at the first failure.

        Returns
        -------
        int
            Number of events delivered.
        """

        delivered = 0
        for event in DrawEvent.undelivered(db):
            self._post(event.payload)
            mark_delivered(db, event)
            delivered += 1
        if delivered:
            logger.info("Delivered %s draw events to webhook", delivered)
        return delivered


__all__ = ["WebhookNotifier"]
