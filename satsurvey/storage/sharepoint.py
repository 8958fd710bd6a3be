"""SharePoint list backend — REST client plus the satellite backend built on it.

Uses httpx for async HTTP. Every mutation fetches a fresh form digest from
``/_api/contextinfo`` first; no write is attempted without one. Calls are not
retried: a timeout or non-success status surfaces as a :class:`BackendError`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

import httpx

from satsurvey.errors import (
    BackendConnectionError,
    BackendError,
    BackendHttpError,
    BackendProtocolError,
    BackendTimeoutError,
)
from satsurvey.records import (
    DEFAULT_STATUS,
    SATELLITE_COLUMNS,
    SENSOR_COLUMNS,
    SatelliteDraft,
    SatelliteRecord,
    SensorRecord,
    parse_iso_date,
)
from satsurvey.storage.backends import (
    ImportOutcome,
    SatelliteBackend,
    WriteOutcome,
    merge_update,
    without,
)

logger = logging.getLogger(__name__)

ODATA_VERBOSE = "application/json;odata=verbose"
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 5000


def list_item_entity_type(list_title: str) -> str:
    """SharePoint entity type name for items of *list_title*."""
    encoded = list_title.replace("_", "_x005f_").replace(" ", "_x0020_")
    return f"SP.Data.{encoded}ListItem"


def satellite_payload(draft: SatelliteDraft, entity_type: str) -> dict[str, Any]:
    """Build the list item body for *draft*.

    Raises ``ValueError`` when the NORAD id is not numeric or the launch date
    is not ISO formatted.
    """
    norad = draft.norad_id.strip()
    if not norad.isdigit():
        raise ValueError(f"NORAD ID must be numeric, got {norad!r}")
    launch = draft.launch_date.strip()
    return {
        "__metadata": {"type": entity_type},
        "Title": draft.title.strip(),
        "NORAD_ID": int(norad),
        "COSPAR_ID": draft.cospar_id.strip(),
        "Mission_Type": draft.mission_type.strip(),
        "Status": draft.status.strip() or DEFAULT_STATUS,
        "Orbit_Type": draft.orbit_type.strip(),
        "Launch_Date": f"{parse_iso_date(launch).isoformat()}T00:00:00Z" if launch else None,
        "Sensor_Names": draft.sensor_names.strip(),
    }


class SharePointClient:
    """Thin async wrapper around the SharePoint list REST API.

    A single :class:`httpx.AsyncClient` is reused across calls. Credentials are
    carried by the client (bearer token and/or session cookies). Call
    :meth:`aclose` (or use as an async context manager) when done.
    """

    def __init__(
        self,
        site_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        auth_token: str = "",
        cookies: dict[str, str] | None = None,
    ) -> None:
        self.site_url = site_url.rstrip("/")
        self.timeout = timeout
        headers = {"Accept": ODATA_VERBOSE}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            cookies=cookies,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "SharePointClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def get_form_digest(self) -> str:
        """Fetch a request digest (POST /_api/contextinfo)."""
        response = await self._request("POST", f"{self.site_url}/_api/contextinfo")
        data = self._json(response)
        try:
            digest = data["d"]["GetContextWebInformation"]["FormDigestValue"]
        except (KeyError, TypeError) as exc:
            raise BackendProtocolError("Failed to get digest: response has no FormDigestValue") from exc
        if not digest:
            raise BackendProtocolError("Failed to get digest: empty FormDigestValue")
        return str(digest)

    async def get_items(
        self, list_title: str, select: Sequence[str], top: int = DEFAULT_PAGE_SIZE
    ) -> list[dict]:
        """Return up to *top* items of *list_title* with the given field projection."""
        response = await self._request(
            "GET",
            self._items_url(list_title),
            params={"$select": ",".join(select), "$top": str(top)},
        )
        data = self._json(response)
        if isinstance(data, dict):
            inner = data.get("d")
            results = inner.get("results") if isinstance(inner, dict) else data.get("value")
            if isinstance(results, list):
                return results
        raise BackendProtocolError(f"List '{list_title}' response has no results")

    async def create_item(self, list_title: str, payload: dict, digest: str) -> dict:
        """Create a list item (POST .../items); returns the created item."""
        response = await self._request(
            "POST",
            self._items_url(list_title),
            headers=self._write_headers(digest),
            body=payload,
            ok=(200, 201),
        )
        data = self._json(response) if response.content else {}
        created = data.get("d", data) if isinstance(data, dict) else {}
        return created if isinstance(created, dict) else {}

    async def update_item(self, list_title: str, item_id: int, payload: dict, digest: str) -> None:
        """Partially update an item (POST .../items(id) as MERGE, IF-MATCH: *)."""
        headers = self._write_headers(digest)
        headers.update({"X-HTTP-Method": "MERGE", "IF-MATCH": "*"})
        await self._request(
            "POST",
            f"{self._items_url(list_title)}({int(item_id)})",
            headers=headers,
            body=payload,
            ok=(200, 204),
        )

    async def delete_item(self, list_title: str, item_id: int, digest: str) -> None:
        """Delete an item (POST .../items(id) as DELETE, IF-MATCH: *)."""
        headers = self._write_headers(digest)
        headers.update({"X-HTTP-Method": "DELETE", "IF-MATCH": "*"})
        await self._request(
            "POST",
            f"{self._items_url(list_title)}({int(item_id)})",
            headers=headers,
            ok=(200, 204),
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _items_url(self, list_title: str) -> str:
        escaped = list_title.replace("'", "''")
        return f"{self.site_url}/_api/web/lists/getbytitle('{escaped}')/items"

    @staticmethod
    def _write_headers(digest: str) -> dict[str, str]:
        return {
            "Accept": ODATA_VERBOSE,
            "Content-Type": ODATA_VERBOSE,
            "X-RequestDigest": digest,
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        body: dict | None = None,
        ok: tuple[int, ...] = (200,),
    ) -> httpx.Response:
        content = json.dumps(body).encode("utf-8") if body is not None else None
        try:
            response = await self._client.request(
                method, url, headers=headers, params=params, content=content
            )
        except httpx.TimeoutException as exc:
            raise BackendTimeoutError(f"Timed out after {self.timeout:g}s calling {url}") from exc
        except httpx.TransportError as exc:
            raise BackendConnectionError(f"Cannot reach SharePoint at {url}: {exc}") from exc
        if response.status_code not in ok:
            detail = f"HTTP {response.status_code}"
            if response.text:
                detail = f"{detail}: {response.text[:200]}"
            raise BackendHttpError(response.status_code, detail)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BackendProtocolError(f"Malformed JSON response: {exc}") from exc


class SharePointBackend(SatelliteBackend):
    name = "sharepoint"

    def __init__(
        self,
        client: SharePointClient,
        *,
        satellite_list: str = "Satellite_Fixed",
        sensor_list: str = "Sensor",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.satellite_list = satellite_list
        self.sensor_list = sensor_list
        self.page_size = page_size
        self.entity_type = list_item_entity_type(satellite_list)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def load(self) -> list[SatelliteRecord]:
        items = await self.client.get_items(
            self.satellite_list, list(SATELLITE_COLUMNS), self.page_size
        )
        try:
            records = [SatelliteRecord.from_list_item(item, idx) for idx, item in enumerate(items)]
        except (TypeError, ValueError) as exc:
            raise BackendProtocolError(f"Malformed satellite list item: {exc}") from exc
        logger.info("Loaded %d satellites from SharePoint", len(records))
        return records

    async def load_sensors(self) -> list[SensorRecord]:
        items = await self.client.get_items(self.sensor_list, list(SENSOR_COLUMNS), self.page_size)
        try:
            sensors = [SensorRecord.from_list_item(item) for item in items]
        except (TypeError, ValueError) as exc:
            raise BackendProtocolError(f"Malformed sensor list item: {exc}") from exc
        logger.info("Loaded %d sensors from SharePoint", len(sensors))
        return sensors

    async def create(self, records: list[SatelliteRecord], draft: SatelliteDraft) -> WriteOutcome:
        payload = self._payload(draft)
        digest = await self.client.get_form_digest()
        created = await self.client.create_item(self.satellite_list, payload, digest)
        # Server-assigned fields only show up in the authoritative list.
        refreshed = await self.load()
        new_id = created.get("ID", created.get("Id"))
        record = next((r for r in refreshed if new_id is not None and r.id == int(new_id)), None)
        return WriteOutcome(records=refreshed, record=record)

    async def update(
        self, records: list[SatelliteRecord], record_id: int, draft: SatelliteDraft
    ) -> WriteOutcome:
        payload = self._payload(draft)
        digest = await self.client.get_form_digest()
        await self.client.update_item(self.satellite_list, record_id, payload, digest)
        updated, record = merge_update(records, record_id, draft)
        return WriteOutcome(records=updated, record=record)

    async def delete(self, records: list[SatelliteRecord], record_id: int) -> WriteOutcome:
        digest = await self.client.get_form_digest()
        await self.client.delete_item(self.satellite_list, record_id, digest)
        return WriteOutcome(records=without(records, record_id))

    async def bulk_import(
        self, records: list[SatelliteRecord], drafts: list[SatelliteDraft]
    ) -> ImportOutcome:
        logger.info("Pushing %d satellites to SharePoint", len(drafts))
        digest = await self.client.get_form_digest()

        imported = 0
        failures: list[str] = []
        for position, draft in enumerate(drafts, start=1):
            try:
                payload = satellite_payload(draft, self.entity_type)
                await self.client.create_item(self.satellite_list, payload, digest)
            except (BackendError, ValueError) as exc:
                logger.warning("Failed to import satellite %s (row %d): %s", draft.title, position, exc)
                failures.append(f"Row {position} ({draft.title}): {exc}")
                continue
            imported += 1

        try:
            refreshed = await self.load()
        except BackendError as exc:
            logger.error("Reload after import failed: %s", exc)
            return ImportOutcome(
                records=None,
                imported=imported,
                failures=failures,
                warning=f"Imported rows were saved but the list could not be refreshed: {exc}",
            )
        return ImportOutcome(records=refreshed, imported=imported, failures=failures)

    def _payload(self, draft: SatelliteDraft) -> dict[str, Any]:
        try:
            return satellite_payload(draft, self.entity_type)
        except ValueError as exc:
            raise BackendProtocolError(str(exc)) from exc
