"""Minimal client for the Datadog series API."""
from typing import Any, Dict, List, Optional
import json
import logging

import httpx

from dogmetrics.series import Series

logger = logging.getLogger(__name__)

ENDPOINT = "https://app.datadoghq.com/api"
SERIES_PATH = "/v1/series"

ACCEPTED_STATUS_CODES = (200, 202)


class DatadogError(Exception):
    """Base class for failures talking to Datadog."""


class DatadogTransportError(DatadogError):
    """The request could not be sent or no response was received."""


class DatadogEncodingError(DatadogError):
    """The batch could not be encoded as JSON, e.g. it holds a NaN."""


class DatadogResponseError(DatadogError):
    """Datadog answered with a status other than 200 or 202."""

    def __init__(self, status_code: int, reason: str = ""):
        status = f"{status_code} {reason}".strip()
        super().__init__(f"Bad Datadog response: '{status}'")
        self.status_code = status_code
        self.reason = reason


class Client:
    """
    Posts series batches to Datadog.

    On EC2 Datadog expects ``host`` to be the instance ID rather than the
    result of ``gethostname()``; callers pass whichever identity they want
    attached to every series.
    """

    def __init__(
        self,
        host: str,
        api_key: str,
        endpoint: str = ENDPOINT,
        timeout_s: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.host = host
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self._http = http_client if http_client is not None else httpx.Client(timeout=timeout_s)

    def series_url(self) -> str:
        """Authenticated URL series data is POSTed to."""
        return f"{self.endpoint}{SERIES_PATH}?api_key={self.api_key}"

    @staticmethod
    def series_payload(series: List[Series]) -> Dict[str, Any]:
        """The API expects an object, so the batch is wrapped in a ``series`` field."""
        return {"series": [s.to_dict() for s in series]}

    def post_series(self, series: List[Series]):
        """POST a batch of series. Raises ``DatadogError`` unless Datadog answers 200 or 202."""
        try:
            body = json.dumps(self.series_payload(series), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise DatadogEncodingError(f"Datadog series could not be encoded: {e}") from e

        try:
            response = self._http.post(
                self.series_url(),
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise DatadogTransportError(f"Datadog request failed: {e}") from e

        if response.status_code not in ACCEPTED_STATUS_CODES:
            raise DatadogResponseError(response.status_code, response.reason_phrase)

        logger.debug(f"Posted {len(series)} series to Datadog ({response.status_code})")

    def reporter(self, registry, **kwargs):
        """Create an un-started ``MetricsReporter`` for ``registry``."""
        from dogmetrics.reporter import MetricsReporter
        return MetricsReporter(self, registry, **kwargs)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
