"""Tests for services: HTTP client, DfaReporting adapter, profile and credentials."""
import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from conversion_uploader.errors import BatchSendError, ConfigError, ResolutionError
from conversion_uploader.models import Batch, Profile
from conversion_uploader.services import (
    DfaReportingClient,
    EnvCredentialSource,
    HTTPAPIClient,
    ProfileResolver,
)

BASE_URL = "https://api.test/dfareporting/v4/"
PROFILES = {
    "items": [
        {"profileId": "111", "accountId": "9000", "userName": "someone@example.com"},
        {"profileId": "222", "accountId": "1234", "userName": "other@example.com"},
        {"profileId": "333", "accountId": "1234", "userName": "Analyst@Example.com"},
    ]
}


def _client(handler, **kwargs):
    return HTTPAPIClient(BASE_URL, token="token-1", transport=httpx.MockTransport(handler), **kwargs)


class TestHTTPAPIClient:
    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as api:
            response = await api.get("userprofiles")

        assert response.json() == {"ok": True}
        assert seen == {"auth": "Bearer token-1", "path": "/dfareporting/v4/userprofiles"}

    @pytest.mark.asyncio
    async def test_error_status_raises_with_detail(self):
        def handler(request):
            return httpx.Response(403, json={"error": "forbidden"})

        async with _client(handler) as api:
            with pytest.raises(RuntimeError, match="API error 403 on POST"):
                await api.post("userprofiles/1/conversions/batchinsert", json={})

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        async with _client(handler) as api:
            with pytest.raises(RuntimeError, match="API error 503"):
                await api.get("userprofiles")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_server_errors_when_enabled(self):
        responses = [httpx.Response(502, text="bad gateway"), httpx.Response(200, json={"items": []})]

        def handler(request):
            return responses.pop(0)

        async with _client(handler, max_retries=2) as api:
            response = await api.get("userprofiles")

        assert response.status_code == 200
        assert responses == []

    @pytest.mark.asyncio
    async def test_requires_context(self):
        api = HTTPAPIClient(BASE_URL)
        with pytest.raises(RuntimeError, match="not initialized"):
            await api.get("userprofiles")


class TestDfaReportingProfiles:
    @pytest.mark.asyncio
    async def test_matches_account_and_identity(self):
        async with _client(lambda request: httpx.Response(200, json=PROFILES)) as api:
            profile = await DfaReportingClient(api).get_profile_id("1234", "analyst@example.com")

        assert profile == Profile(profile_id="333", account_id="1234", user_name="Analyst@Example.com")

    @pytest.mark.asyncio
    async def test_first_profile_without_identity(self):
        async with _client(lambda request: httpx.Response(200, json=PROFILES)) as api:
            profile = await DfaReportingClient(api).get_profile_id(1234)

        assert profile.profile_id == "222"

    @pytest.mark.asyncio
    async def test_no_matching_profile(self):
        async with _client(lambda request: httpx.Response(200, json=PROFILES)) as api:
            with pytest.raises(ResolutionError, match="No profile found for account 1234"):
                await DfaReportingClient(api).get_profile_id("1234", "nobody@example.com")


class TestDfaReportingUpload:
    PROFILE = Profile(profile_id="333", account_id="1234")
    CONFIG = {
        "idType": "gclid",
        "conversion": {"floodlightConfigurationId": "fc-1", "floodlightActivityId": "fa-1", "quantity": 1},
        "customVariables": ["U1"],
    }

    @pytest.mark.asyncio
    async def test_builds_batch_insert_request(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"hasFailures": False, "status": [{}, {}]})

        batch = Batch(
            index=0,
            start=0,
            records=['{"gclid": "g1", "U1": "x", "value": 5}', '{"gclid": "g2"}'],
        )
        async with _client(handler) as api:
            outcome = await DfaReportingClient(api).upload_conversions(self.PROFILE, self.CONFIG, batch)

        assert outcome.succeeded == 2 and outcome.failed == 0
        assert seen["path"] == "/dfareporting/v4/userprofiles/333/conversions/batchinsert"
        body = seen["body"]
        assert body["kind"] == "dfareporting#conversionsBatchInsertRequest"
        assert "encryptionInfo" not in body
        first, second = body["conversions"]
        assert first["gclid"] == "g1"
        assert first["floodlightActivityId"] == "fa-1"
        assert first["value"] == 5
        assert first["customVariables"] == [{"type": "U1", "value": "x"}]
        assert second["customVariables"] == []
        assert first["ordinal"] == first["timestampMicros"]

    @pytest.mark.asyncio
    async def test_partial_failures_reported_per_record(self):
        status = [
            {},
            {"errors": [{"code": "INVALID_ARGUMENT", "message": "Bad gclid"}]},
        ]

        def handler(request):
            return httpx.Response(200, json={"hasFailures": True, "status": status})

        batch = Batch(index=3, start=6, records=['{"gclid": "g1"}', '{"gclid": "bad"}', "not json"])
        async with _client(handler) as api:
            outcome = await DfaReportingClient(api).upload_conversions(self.PROFILE, self.CONFIG, batch)

        assert outcome.batch_index == 3
        assert outcome.succeeded == 1
        assert outcome.failed == 2
        reasons = {e.line: e.reason for e in outcome.errors}
        assert reasons[7] == "INVALID_ARGUMENT: Bad gclid"
        assert reasons[8].startswith("Invalid record")

    @pytest.mark.asyncio
    async def test_records_missing_id_are_not_sent(self):
        api = AsyncMock()
        batch = Batch(index=0, start=0, records=[{"dclid": "d"}])

        outcome = await DfaReportingClient(api).upload_conversions(self.PROFILE, self.CONFIG, batch)

        api.post.assert_not_awaited()
        assert outcome.failed == 1
        assert outcome.errors[0].reason == "Missing gclid"

    @pytest.mark.asyncio
    async def test_encryption_info_for_encrypted_user_id(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"hasFailures": False})

        config = {
            "idType": "encryptedUserId",
            "conversion": {},
            "encryptionInfo": {"encryptionSource": "AD_SERVING", "encryptionEntityId": "42"},
        }
        batch = Batch(index=0, start=0, records=['{"encryptedUserId": "enc"}'])
        async with _client(handler) as api:
            await DfaReportingClient(api).upload_conversions(self.PROFILE, config, batch)

        assert seen["body"]["encryptionInfo"]["encryptionEntityId"] == "42"
        assert seen["body"]["conversions"][0]["encryptedUserId"] == "enc"

    @pytest.mark.asyncio
    async def test_missing_statuses_fail_the_batch(self):
        def handler(request):
            return httpx.Response(200, json={"hasFailures": True, "status": []})

        batch = Batch(index=2, start=0, records=['{"gclid": "g1"}', '{"gclid": "g2"}'])
        async with _client(handler) as api:
            with pytest.raises(BatchSendError, match="0 statuses for 2 conversions") as exc_info:
                await DfaReportingClient(api).upload_conversions(self.PROFILE, self.CONFIG, batch)

        assert exc_info.value.batch_index == 2

    @pytest.mark.asyncio
    async def test_undecodable_record_fails_alone(self):
        def handler(request):
            return httpx.Response(200, json={"hasFailures": False})

        batch = Batch(index=0, start=0, records=['{"gclid": "g1"}', b'{"gclid": "\xff"}'])
        async with _client(handler) as api:
            outcome = await DfaReportingClient(api).upload_conversions(self.PROFILE, self.CONFIG, batch)

        assert outcome.succeeded == 1
        assert outcome.failed == 1
        assert outcome.errors[0].line == 1
        assert outcome.errors[0].reason.startswith("Invalid record")

    @pytest.mark.asyncio
    async def test_http_error_raises_batch_send_error(self):
        def handler(request):
            return httpx.Response(429, json={"error": "quota exceeded"})

        batch = Batch(index=5, start=0, records=['{"gclid": "g1"}'])
        async with _client(handler) as api:
            with pytest.raises(BatchSendError, match="429") as exc_info:
                await DfaReportingClient(api).upload_conversions(self.PROFILE, self.CONFIG, batch)

        assert exc_info.value.batch_index == 5


class TestProfileResolver:
    @pytest.mark.asyncio
    async def test_resolves_once(self):
        client = AsyncMock()
        client.get_profile_id.return_value = Profile(profile_id="1", account_id="acc")

        profile = await ProfileResolver(client).resolve("acc", "me@example.com")

        assert profile.profile_id == "1"
        client.get_profile_id.assert_awaited_once_with("acc", "me@example.com")

    @pytest.mark.asyncio
    async def test_lookup_failure_becomes_resolution_error(self):
        client = AsyncMock()
        client.get_profile_id.side_effect = RuntimeError("API error 401 on GET userprofiles")

        with pytest.raises(ResolutionError, match="401"):
            await ProfileResolver(client).resolve("acc")

        client.get_profile_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_resolution_error(self):
        client = AsyncMock()
        client.get_profile_id.side_effect = httpx.ConnectError("unreachable")

        with pytest.raises(ResolutionError, match="unreachable"):
            await ProfileResolver(client).resolve("acc")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ConnectionError("reset by peer"), asyncio.TimeoutError()])
    async def test_network_failure_becomes_resolution_error(self, error):
        client = AsyncMock()
        client.get_profile_id.side_effect = error

        with pytest.raises(ResolutionError, match="Profile lookup failed"):
            await ProfileResolver(client).resolve("acc")

    @pytest.mark.asyncio
    async def test_missing_profile(self):
        client = AsyncMock()
        client.get_profile_id.return_value = None

        with pytest.raises(ResolutionError, match="No profile found"):
            await ProfileResolver(client).resolve("acc")


class TestEnvCredentialSource:
    def test_default_variable(self):
        source = EnvCredentialSource({"CM_ACCESS_TOKEN": "abc"})
        assert source.get_token() == "abc"

    def test_secret_name_maps_to_variable(self):
        source = EnvCredentialSource({"TENANT_A_TOKEN": "xyz"})
        assert EnvCredentialSource.env_name("tenant-a.token") == "TENANT_A_TOKEN"
        assert source.get_token("tenant-a.token") == "xyz"

    def test_missing_token(self):
        with pytest.raises(ConfigError, match="CM_ACCESS_TOKEN"):
            EnvCredentialSource({}).get_token()
