import logging
import os
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from form_engine.models import Option

log = logging.getLogger(__name__)

REFERENCE_DATA_TIMEOUT = float(os.getenv("REFERENCE_DATA_TIMEOUT", "10"))


class ReferenceDataError(RuntimeError):
    """Raised when a reference-data lookup cannot be completed."""


class ReferenceDataProvider(Protocol):
    def fetch_children(self, parent_id: Any) -> List[Option]:
        ...


def _to_option(item: Any) -> Optional[Option]:
    """Accept ``{"id", "name"}`` rows as the backend returns them, or plain strings."""
    if isinstance(item, str):
        text = item.strip()
        return Option(value=text, label=text) if text else None
    if not isinstance(item, dict):
        return None
    raw_value = item.get("value", item.get("id"))
    raw_label = item.get("label", item.get("name", raw_value))
    if raw_value is None:
        return None
    return Option(value=str(raw_value), label=str(raw_label))


class StaticReferenceProvider:
    def __init__(self, children: Mapping[str, List[Any]]):
        self._children: Dict[str, List[Any]] = {str(key): list(items) for key, items in children.items()}

    def fetch_children(self, parent_id: Any) -> List[Option]:
        items = self._children.get(str(parent_id), [])
        return [option for option in (_to_option(item) for item in items) if option is not None]


class RemoteReferenceProvider:
    """Fetches ``{base_url}/{resource}/{parent_id}`` and normalises the rows into options."""

    def __init__(
        self,
        base_url: str,
        resource: str,
        retries: int = 3,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.resource = resource.strip("/")
        self.retries = max(1, retries)
        self.timeout = timeout if timeout is not None else REFERENCE_DATA_TIMEOUT
        self.session = session or requests.Session()

    def fetch_children(self, parent_id: Any) -> List[Option]:
        url = f"{self.base_url}/{self.resource}/{parent_id}"
        delay = 0.5
        last_error: Exception | None = None

        for attempt in range(self.retries):
            try:
                response = self.session.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
                if response.status_code >= 400:
                    raise RuntimeError(f"{response.status_code} {response.text[:400]}")

                payload = response.json()
                rows = payload.get("data", payload) if isinstance(payload, dict) else payload
                if not isinstance(rows, list):
                    log.error("Reference data for %s has unexpected shape: %s", url, str(payload)[:400])
                    raise RuntimeError("Unexpected payload shape")

                options = [option for option in (_to_option(row) for row in rows) if option is not None]
                log.info("Fetched %d %s for %s", len(options), self.resource, parent_id)
                return options
            except (requests.RequestException, RuntimeError, ValueError) as exc:
                last_error = exc
                log.warning(
                    "Reference lookup failed (resource=%s, attempt=%d/%d); retrying: %s",
                    self.resource,
                    attempt + 1,
                    self.retries,
                    exc,
                )
                if attempt + 1 < self.retries:
                    time.sleep(delay)
                    delay = min(delay * 2, 4.0)

        raise ReferenceDataError(f"{self.resource} lookup for {parent_id} failed: {last_error}")
