"""
Monitor Service OData client.

Reads delivery groups, machines and sessions from a controller's Monitor
Service feed (``/Citrix/Monitor/OData/{version}/Data``).

Key features:
- Handles both light JSON (``value``) and verbose JSON (``d.results``) payloads
- Follows server-driven paging (``odata.nextLink`` / ``__next``)
- Parses ISO-8601 and ``/Date(ms)/`` timestamps
- Retries transient failures with exponential backoff
"""

import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from ..config.constants import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DELIVERY_GROUP_FIELDS,
    ENTITY_DELIVERY_GROUPS,
    ENTITY_MACHINES,
    ENTITY_SESSIONS,
    MACHINE_FIELDS,
    NEXT_LINK_KEYS,
    ODATA_BASE_PATH,
    ODATA_VERSION,
    SESSION_FIELDS,
    STAGE_DELIVERY_GROUPS,
    STAGE_MACHINES,
    STAGE_SESSIONS,
)
from ..config.settings import Settings
from ..exceptions import CollectionError, ConnectivityError
from ..monitoring.retry_handler import ErrorCategory, RetryConfig, RetryManager
from ..schemas.models import DeliveryGroup, Machine, SessionInterval, TimeWindow
from .base import Credential, DataSource

logger = logging.getLogger(__name__)

# Safety net against feeds that keep returning the same next link
MAX_PAGES = 10_000

_MS_DATE_RE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")
_FRACTION_RE = re.compile(r"\.(\d+)")


# =============================================================================
# Payload Helpers
# =============================================================================


def parse_odata_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an OData timestamp into a timezone-aware datetime.

    Accepts ISO-8601 strings (with any number of fractional digits) and the
    ``/Date(ms)/`` form. Naive values are taken as UTC.

    Args:
        value: Raw value from the payload

    Returns:
        Aware datetime, or None for null values

    Raises:
        ValueError: If the value cannot be parsed
    """
    if value is None or value == "":
        return None

    if not isinstance(value, str):
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    match = _MS_DATE_RE.match(value)
    if match:
        # The offset suffix is informational; the millisecond count is UTC
        millis = int(match.group(1))
        return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=millis)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 accepts only 3 or 6 fraction digits
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text)

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_page(payload: Any) -> tuple[list[dict], Optional[str]]:
    """
    Split an OData response into its records and the next page link.

    Raises:
        ValueError: If the payload has no recognizable result list
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected OData payload type: {type(payload).__name__}")

    if "value" in payload:
        records = payload["value"]
        container = payload
    elif "d" in payload:
        container = payload["d"]
        if isinstance(container, list):
            return container, None
        records = container.get("results")
    else:
        raise ValueError("OData payload has no 'value' or 'd' result list")

    if not isinstance(records, list):
        raise ValueError("OData result list is not an array")

    next_link = None
    for key in NEXT_LINK_KEYS:
        if container.get(key):
            next_link = container[key]
            break

    return records, next_link


def _optional_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _format_filter_datetime(dt: datetime, odata_version: str) -> str:
    """Render a UTC datetime literal for a $filter expression."""
    utc = dt.astimezone(timezone.utc).replace(tzinfo=None)
    stamp = utc.isoformat(timespec="seconds")
    if odata_version.lower().startswith("v4"):
        return f"{stamp}Z"
    return f"datetime'{stamp}'"


# =============================================================================
# Client
# =============================================================================


class MonitorODataClient(DataSource):
    """
    DataSource backed by the Monitor Service OData feed.

    A single httpx.Client is shared across threads; credentials are passed
    per request so one client can serve every controller.
    """

    def __init__(
        self,
        use_https: bool = False,
        odata_version: str = ODATA_VERSION,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            use_https: Use https:// for bare controller addresses
            odata_version: Feed version segment ('v3' or 'v4')
            timeout: Request timeout in seconds
            retry_config: Retry behaviour for failed requests
            transport: Optional httpx transport (e.g. MockTransport in tests)
            sleep: Sleep function used between retries
        """
        self.use_https = use_https
        self.odata_version = odata_version
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )
        self._retry = RetryManager(config=retry_config or RetryConfig(), sleep=sleep)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "MonitorODataClient":
        """Create a client from application settings."""
        return cls(
            use_https=settings.use_https,
            odata_version=settings.odata_version,
            timeout=settings.request_timeout_seconds,
            retry_config=RetryConfig.from_settings(settings.retry),
            **kwargs,
        )

    @property
    def source_type(self) -> str:
        return "odata"

    def close(self) -> None:
        self._client.close()

    # -------------------------------------------------------------------------
    # URLs and requests
    # -------------------------------------------------------------------------

    def base_url(self, controller: str) -> str:
        """Feed root for a controller address (host, host:port or URL)."""
        root = controller.rstrip("/")
        if "://" not in root:
            scheme = "https" if self.use_https else "http"
            root = f"{scheme}://{root}"
        return root + ODATA_BASE_PATH.format(version=self.odata_version)

    @staticmethod
    def _auth(credential: Optional[Credential]) -> Optional[httpx.BasicAuth]:
        if credential is None or not credential.username:
            return None
        return httpx.BasicAuth(credential.username, credential.password)

    def _get_json(
        self,
        url: str,
        params: Optional[dict[str, str]],
        credential: Optional[Credential],
    ) -> Any:
        response = self._client.get(url, params=params, auth=self._auth(credential))
        response.raise_for_status()
        return response.json()

    def _fetch_entity_set(
        self,
        controller: str,
        entity: str,
        params: dict[str, str],
        credential: Optional[Credential],
        stage: str,
    ) -> list[dict]:
        """
        Fetch every record of an entity set, following next links.

        Raises:
            CollectionError: If a page cannot be fetched or parsed
        """
        url: Optional[str] = f"{self.base_url(controller)}/{entity}"
        page_params: Optional[dict[str, str]] = {"$format": "json", **params}
        records: list[dict] = []
        pages = 0

        while url:
            result = self._retry.execute_with_retry(
                self._get_json, url, page_params, credential
            )
            if not result.success:
                raise CollectionError(
                    controller, stage=stage, reason=str(result.last_error)
                ) from result.last_error

            try:
                page, next_link = extract_page(result.result)
            except ValueError as e:
                raise CollectionError(controller, stage=stage, reason=str(e)) from e

            records.extend(page)
            pages += 1
            if pages >= MAX_PAGES:
                raise CollectionError(
                    controller, stage=stage, reason=f"exceeded {MAX_PAGES} pages"
                )

            # Next links already carry the query string
            url = str(httpx.URL(url).join(next_link)) if next_link else None
            page_params = None

        logger.debug(
            f"Fetched {len(records)} {entity} record(s) from {controller} "
            f"in {pages} page(s)"
        )
        return records

    # -------------------------------------------------------------------------
    # DataSource interface
    # -------------------------------------------------------------------------

    def probe(self, controller: str, credential: Optional[Credential] = None) -> None:
        """
        Request the feed's service document.

        Raises:
            ConnectivityError: If the request fails or credentials are rejected
        """
        result = self._retry.execute_with_retry(
            self._get_json,
            self.base_url(controller),
            {"$format": "json"},
            credential,
            retry_on=(ErrorCategory.TRANSIENT,),
        )
        if result.success:
            return

        error = result.last_error
        if isinstance(error, httpx.HTTPStatusError) and error.response.status_code in (
            401,
            403,
        ):
            reason = f"credentials rejected (HTTP {error.response.status_code})"
        else:
            reason = str(error)
        raise ConnectivityError(controller, reason=reason) from error

    def fetch_delivery_groups(
        self, controller: str, credential: Optional[Credential] = None
    ) -> list[DeliveryGroup]:
        records = self._fetch_entity_set(
            controller,
            ENTITY_DELIVERY_GROUPS,
            {"$select": ",".join(DELIVERY_GROUP_FIELDS)},
            credential,
            STAGE_DELIVERY_GROUPS,
        )
        # A missing Id is kept as "" so the join step can reject it
        return [
            DeliveryGroup(id=_optional_id(r.get("Id")) or "", name=r.get("Name") or "")
            for r in records
        ]

    def fetch_machines(
        self, controller: str, credential: Optional[Credential] = None
    ) -> list[Machine]:
        records = self._fetch_entity_set(
            controller,
            ENTITY_MACHINES,
            {"$select": ",".join(MACHINE_FIELDS)},
            credential,
            STAGE_MACHINES,
        )
        return [
            Machine(
                id=_optional_id(r.get("Id")) or "",
                delivery_group_id=_optional_id(r.get("DesktopGroupId")),
            )
            for r in records
        ]

    def _session_params(self, window: TimeWindow) -> dict[str, str]:
        start = _format_filter_datetime(window.start, self.odata_version)
        end = _format_filter_datetime(window.end, self.odata_version)
        params = {
            "$filter": (
                f"StartDate le {end} and (EndDate eq null or EndDate ge {start})"
            ),
        }
        if self.odata_version.lower().startswith("v4"):
            params["$select"] = "StartDate,EndDate"
            params["$expand"] = "Machine($select=DesktopGroupId)"
        else:
            params["$select"] = ",".join(SESSION_FIELDS)
            params["$expand"] = "Machine"
        return params

    def fetch_sessions(
        self,
        controller: str,
        window: TimeWindow,
        credential: Optional[Credential] = None,
    ) -> list[SessionInterval]:
        records = self._fetch_entity_set(
            controller,
            ENTITY_SESSIONS,
            self._session_params(window),
            credential,
            STAGE_SESSIONS,
        )

        sessions = []
        skipped = 0
        for record in records:
            try:
                login = parse_odata_datetime(record.get("StartDate"))
                logoff = parse_odata_datetime(record.get("EndDate"))
            except ValueError as e:
                raise CollectionError(
                    controller, stage=STAGE_SESSIONS, reason=f"bad timestamp: {e}"
                ) from e

            if login is None:
                # Never-established sessions carry no start
                skipped += 1
                continue

            machine = record.get("Machine") or {}
            sessions.append(
                SessionInterval(
                    delivery_group_id=_optional_id(machine.get("DesktopGroupId")),
                    login_time=login,
                    logoff_time=logoff,
                )
            )

        if skipped:
            logger.debug(f"Skipped {skipped} session(s) without a start on {controller}")
        return sessions
