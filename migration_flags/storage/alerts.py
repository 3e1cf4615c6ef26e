"""
Webhook alert sink for emergency rollback notifications.
"""

from typing import Any, Mapping

import requests
import structlog

from migration_flags.exceptions import SourceUnavailable
from migration_flags.storage.base import AlertSink

logger = structlog.get_logger(__name__)


class WebhookAlertSink(AlertSink):
    """
    Posts alert notifications as JSON to an HTTP endpoint.

    The request body is ``{"event": <event_name>, **payload}``. Delivery is best
    effort with a short timeout; failures surface as ``SourceUnavailable`` and the
    controller logs and absorbs them.
    """

    def __init__(self, url: str, timeout: float = 2.0, session: requests.Session = None):
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    def notify(self, event_name: str, payload: Mapping[str, Any]) -> None:
        body = {'event': event_name, **payload}
        try:
            response = self._session.post(self._url, json=body, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceUnavailable('alert', 'notify', e) from e

        logger.info(
            "Alert notification delivered",
            alert_event=event_name,
            status_code=response.status_code
        )


__all__ = ['WebhookAlertSink']
