"""Tests for the SharePoint list client and backend over a mocked httpx transport."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from satsurvey.errors import (
    BackendConnectionError,
    BackendHttpError,
    BackendProtocolError,
    BackendTimeoutError,
)
from satsurvey.records import SatelliteDraft, SatelliteRecord
from satsurvey.storage.sharepoint import (
    SharePointBackend,
    SharePointClient,
    list_item_entity_type,
    satellite_payload,
)

SITE = "https://contoso.sharepoint.com/sites/space"
DIGEST = "0xABCDEF,18 Oct 2026 12:00:00 -0000"
DIGEST_BODY = {"d": {"GetContextWebInformation": {"FormDigestValue": DIGEST}}}


def _mock_response(status_code=200, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    if json_data is not None:
        text = json.dumps(json_data)
        resp.json = MagicMock(return_value=json_data)
    else:
        resp.json = MagicMock(side_effect=ValueError("no JSON"))
    resp.text = text
    resp.content = text.encode()
    return resp


def _items(*items):
    return _mock_response(200, {"d": {"results": list(items)}})


def _client(*responses, side_effect=None) -> SharePointClient:
    client = SharePointClient(SITE)
    client._client = AsyncMock()
    client._client.request = AsyncMock(side_effect=side_effect or list(responses))
    return client


def _calls(client):
    return client._client.request.call_args_list


class TestPayload:
    def test_entity_type_escapes_underscores(self):
        assert list_item_entity_type("Satellite_Fixed") == "SP.Data.Satellite_x005f_FixedListItem"
        assert list_item_entity_type("My List") == "SP.Data.My_x0020_ListListItem"

    def test_norad_sent_as_integer(self):
        payload = satellite_payload(
            SatelliteDraft(title="Aqua", norad_id="27424", launch_date="2002-05-04"), "SP.X"
        )
        assert payload["NORAD_ID"] == 27424
        assert payload["Launch_Date"] == "2002-05-04T00:00:00Z"
        assert payload["__metadata"] == {"type": "SP.X"}

    def test_blank_launch_date_is_null(self):
        payload = satellite_payload(SatelliteDraft(title="Aqua", norad_id="1"), "SP.X")
        assert payload["Launch_Date"] is None

    def test_non_numeric_norad(self):
        with pytest.raises(ValueError):
            satellite_payload(SatelliteDraft(title="Aqua", norad_id="abc"), "SP.X")


class TestSharePointClient:
    async def test_form_digest(self):
        client = _client(_mock_response(200, DIGEST_BODY))
        assert await client.get_form_digest() == DIGEST
        method, url = _calls(client)[0].args
        assert method == "POST"
        assert url == f"{SITE}/_api/contextinfo"

    async def test_form_digest_missing_value(self):
        client = _client(_mock_response(200, {"d": {}}))
        with pytest.raises(BackendProtocolError):
            await client.get_form_digest()

    async def test_http_error_status(self):
        client = _client(_mock_response(403, text="Access denied"))
        with pytest.raises(BackendHttpError) as exc_info:
            await client.get_form_digest()
        assert exc_info.value.status_code == 403
        assert "Access denied" in str(exc_info.value)

    async def test_timeout(self):
        client = _client(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(BackendTimeoutError):
            await client.get_items("Satellite_Fixed", ["ID"])

    async def test_connection_error(self):
        client = _client(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(BackendConnectionError):
            await client.get_items("Satellite_Fixed", ["ID"])

    async def test_get_items_projection(self):
        client = _client(_items({"ID": 1}))
        items = await client.get_items("Satellite_Fixed", ["ID", "Title"], top=5000)
        assert items == [{"ID": 1}]
        call = _calls(client)[0]
        assert call.args[1] == f"{SITE}/_api/web/lists/getbytitle('Satellite_Fixed')/items"
        assert call.kwargs["params"] == {"$select": "ID,Title", "$top": "5000"}

    async def test_get_items_without_results(self):
        client = _client(_mock_response(200, {"d": {}}))
        with pytest.raises(BackendProtocolError):
            await client.get_items("Satellite_Fixed", ["ID"])

    async def test_update_uses_merge(self):
        client = _client(_mock_response(204, text=""))
        await client.update_item("Satellite_Fixed", 12, {"Title": "X"}, DIGEST)
        call = _calls(client)[0]
        assert call.args[1].endswith("/items(12)")
        headers = call.kwargs["headers"]
        assert headers["X-HTTP-Method"] == "MERGE"
        assert headers["IF-MATCH"] == "*"
        assert headers["X-RequestDigest"] == DIGEST
        assert json.loads(call.kwargs["content"]) == {"Title": "X"}

    async def test_delete_item(self):
        client = _client(_mock_response(200, text=""))
        await client.delete_item("Satellite_Fixed", 9, DIGEST)
        assert _calls(client)[0].kwargs["headers"]["X-HTTP-Method"] == "DELETE"

    async def test_create_rejects_unexpected_status(self):
        client = _client(_mock_response(400, text="bad field"))
        with pytest.raises(BackendHttpError):
            await client.create_item("Satellite_Fixed", {}, DIGEST)


def _existing():
    return [
        SatelliteRecord(
            id=12,
            title="Aqua",
            norad_id="27424",
            expected_lifetime="6 years",
            primary_sensor="MODIS",
        )
    ]


class TestSharePointBackend:
    async def test_load_normalizes_items(self):
        client = _client(
            _items(
                {"ID": 1, "Title": None, "NORAD_ID": 49260, "Launch_Date": "2021-09-27T07:00:00Z"},
                {"ID": 2, "Title": "Terra", "NORAD_ID": 25994, "Status": "Retired"},
            )
        )
        records = await SharePointBackend(client).load()
        assert records[0].title == "Satellite 0"
        assert records[0].status == "Operational"
        assert records[0].norad_id == "49260"
        assert records[0].launch_date == "2021-09-27"
        assert records[1].status == "Retired"
        params = _calls(client)[0].kwargs["params"]
        assert "Primary_Sensor" in params["$select"]

    async def test_load_sensors(self):
        client = _client(_items({"ID": 3, "Title": "MODIS", "Sensor_Type": "Imager"}))
        sensors = await SharePointBackend(client).load_sensors()
        assert sensors[0].title == "MODIS"
        assert "getbytitle('Sensor')" in _calls(client)[0].args[1]

    async def test_create_refetches_list(self):
        client = _client(
            _mock_response(200, DIGEST_BODY),
            _mock_response(201, {"d": {"ID": 13, "Title": "Terra"}}),
            _items(
                {"ID": 12, "Title": "Aqua", "NORAD_ID": 27424},
                {"ID": 13, "Title": "Terra", "NORAD_ID": 25994, "Expected_Lifetime": "6 years"},
            ),
        )
        outcome = await SharePointBackend(client).create(
            _existing(), SatelliteDraft(title="Terra", norad_id="25994")
        )
        assert [r.id for r in outcome.records] == [12, 13]
        assert outcome.record.expected_lifetime == "6 years"
        body = json.loads(_calls(client)[1].kwargs["content"])
        assert body["__metadata"]["type"] == "SP.Data.Satellite_x005f_FixedListItem"
        assert body["NORAD_ID"] == 25994

    async def test_create_without_digest_writes_nothing(self):
        client = _client(_mock_response(500, text="boom"))
        with pytest.raises(BackendHttpError):
            await SharePointBackend(client).create([], SatelliteDraft(title="A", norad_id="1"))
        assert len(_calls(client)) == 1

    async def test_update_merges_locally(self):
        client = _client(_mock_response(200, DIGEST_BODY), _mock_response(204))
        existing = _existing()
        outcome = await SharePointBackend(client).update(
            existing, 12, SatelliteDraft(title="Aqua (EOS PM-1)", norad_id="27424")
        )
        assert outcome.record.title == "Aqua (EOS PM-1)"
        assert outcome.record.primary_sensor == "MODIS"
        assert outcome.record.expected_lifetime == "6 years"
        assert existing[0].title == "Aqua"

    async def test_delete_removes_record(self):
        client = _client(_mock_response(200, DIGEST_BODY), _mock_response(200))
        outcome = await SharePointBackend(client).delete(_existing(), 12)
        assert outcome.records == []

    async def test_bulk_import_tolerates_row_failures(self):
        responses = [
            _mock_response(200, DIGEST_BODY),
            _mock_response(201, {"d": {"ID": 20}}),
            _mock_response(400, text="invalid"),
            _items({"ID": 12, "Title": "Aqua"}, {"ID": 20, "Title": "One"}),
        ]
        client = _client(*responses)
        outcome = await SharePointBackend(client).bulk_import(
            _existing(),
            [
                SatelliteDraft(title="One", norad_id="1"),
                SatelliteDraft(title="Two", norad_id="2"),
                SatelliteDraft(title="Three", norad_id="x3"),
            ],
        )
        assert outcome.imported == 1
        assert len(outcome.failures) == 2
        assert outcome.failures[0].startswith("Row 2 (Two)")
        assert [r.id for r in outcome.records] == [12, 20]
        # one digest, two POSTs, one reload; the malformed row never hits the wire
        assert len(_calls(client)) == 4

    async def test_bulk_import_reload_failure_leaves_collection_unknown(self):
        client = _client(
            _mock_response(200, DIGEST_BODY),
            _mock_response(201, {"d": {"ID": 20}}),
            _mock_response(503, text="busy"),
        )
        existing = _existing()
        outcome = await SharePointBackend(client).bulk_import(
            existing, [SatelliteDraft(title="One", norad_id="1")]
        )
        assert outcome.imported == 1
        assert outcome.records is None
        assert outcome.warning

    async def test_bulk_import_without_digest_raises(self):
        client = _client(_mock_response(401, text="login"))
        with pytest.raises(BackendHttpError):
            await SharePointBackend(client).bulk_import([], [SatelliteDraft(title="A", norad_id="1")])
