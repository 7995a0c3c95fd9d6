import logging
from typing import Optional

import requests
from requests.exceptions import RequestException

from config_models import AutomationConfig

logger = logging.getLogger(__name__)


class AutomationError(Exception):
    """Exception raised when the automation endpoint rejects or drops an event."""

    pass


class AutomationClient:
    """Posts normalized event records to the external automation hub."""

    def __init__(self, config: AutomationConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.config.endpoint_url)

    def post_event(self, event: dict) -> bool:
        """POST one event record as JSON.

        Args:
            event: Serialized event; its ``id`` is sent as ``Idempotency-Key``
                so the receiver can drop redeliveries.

        Returns:
            True if the endpoint accepted the event.

        Raises:
            AutomationError: On timeout, connection failure or non-2xx response.
        """
        try:
            logger.info("Posting event %s (%s) to automation endpoint", event.get("id"), event.get("name"))
            response = self.session.post(
                self.config.endpoint_url,
                json=event,
                headers={"Idempotency-Key": str(event.get("id", ""))},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            return True

        except requests.exceptions.Timeout:
            logger.error("Timeout while posting event %s", event.get("id"))
            raise AutomationError("Connection to automation endpoint timed out")

        except requests.exceptions.ConnectionError as e:
            logger.error("Connection error for event %s: %s", event.get("id"), e)
            raise AutomationError(f"Could not connect to automation endpoint: {e}")

        except requests.exceptions.HTTPError as e:
            logger.error("HTTP error for event %s: %s", event.get("id"), e)
            raise AutomationError(f"Automation endpoint error: {e}")

        except RequestException as e:
            logger.error("Request error for event %s: %s", event.get("id"), e)
            raise AutomationError(f"Request to automation endpoint failed: {e}")
