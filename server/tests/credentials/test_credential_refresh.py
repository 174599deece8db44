"""Tests for MediaCredentialRefreshService."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOON, FakeExtractor
from utils.aws.credential_errors import SSOTokenNotFoundError
from utils.aws.credential_providers import SSOCacheCredentialExtractor
from utils.aws.credential_refresh import (
    REFRESH_IN_PROGRESS_MESSAGE,
    REFRESH_SUCCESS_MESSAGE,
    MediaCredentialRefreshService,
    build_refresh_service,
)
from utils.aws.credential_store import CredentialStore


@pytest.fixture()
def build_service(settings, clock, media_config):
    def _build(extractor, **kwargs):
        store = CredentialStore(settings, clock=clock)
        return MediaCredentialRefreshService(extractor, store, media_config, clock=clock, **kwargs)

    return _build


def _store_record(settings, **record):
    settings.set("aws_config", json.dumps(record), "json")


class TestExpiryChecker:

    def test_refresh_due_boundary(self, build_service, make_credentials):
        """Lead time is 30 minutes: due at exactly expiry - 30m, not a second before."""
        service = build_service(FakeExtractor())
        creds = make_credentials(expires_at=datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc))

        assert service.refresh_due(creds, now=datetime(2025, 6, 1, 11, 29, 59, tzinfo=timezone.utc)) is False
        assert service.refresh_due(creds, now=datetime(2025, 6, 1, 11, 30, 0, tzinfo=timezone.utc)) is True

    def test_missing_record_needs_refresh(self, build_service):
        service = build_service(FakeExtractor())
        assert asyncio.run(service.needs_refresh()) is True

    def test_record_without_expiry_needs_refresh(self, build_service, settings):
        _store_record(settings, accessKey="ASIA1", secretKey="s")
        service = build_service(FakeExtractor())
        assert asyncio.run(service.needs_refresh()) is True

    def test_read_failure_needs_refresh(self, build_service, settings):
        settings.get_error = RuntimeError("db down")
        service = build_service(FakeExtractor())
        assert asyncio.run(service.needs_refresh()) is True

    def test_fresh_record_does_not_need_refresh(self, build_service, settings):
        _store_record(settings, accessKey="ASIA1", secretKey="s", expiresAt="2025-06-01T14:00:00.000Z")
        service = build_service(FakeExtractor())
        assert asyncio.run(service.needs_refresh()) is False


class TestRefreshOrchestrator:

    def test_successful_refresh_stores_new_set(self, build_service, settings, make_credentials):
        service = build_service(FakeExtractor(credentials=make_credentials()))

        result = asyncio.run(service.refresh())

        assert result == {
            "success": True,
            "message": REFRESH_SUCCESS_MESSAGE,
            "expiresAt": "2025-06-01T13:00:00.000Z",
        }
        record = json.loads(settings.values["aws_config"])
        assert record["accessKey"] == "ASIAEXAMPLEKEY"
        assert record["lastRefresh"] == "2025-06-01T12:00:00.000Z"
        assert service.is_refreshing is False

    def test_extractor_failure_is_reported_and_store_untouched(self, build_service, settings):
        _store_record(settings, accessKey="ASIAOLD", secretKey="s", expiresAt="2025-06-01T12:10:00.000Z")
        before = settings.values["aws_config"]
        error = SSOTokenNotFoundError('No valid SSO access token found. Run "aws sso login" first.')
        service = build_service(FakeExtractor(error=error))

        result = asyncio.run(service.refresh())

        assert result["success"] is False
        assert "aws sso login" in result["message"]
        assert result["error"] == "SSOTokenNotFoundError"
        assert settings.values["aws_config"] == before

    def test_flag_released_after_failure(self, build_service, make_credentials):
        extractor = FakeExtractor(error=RuntimeError("boom"))
        service = build_service(extractor)

        assert asyncio.run(service.refresh())["success"] is False
        assert service.is_refreshing is False

        extractor.error = None
        extractor.credentials = make_credentials()
        assert asyncio.run(service.refresh())["success"] is True

    def test_concurrent_refresh_is_rejected(self, build_service, make_credentials):
        extractor = FakeExtractor(credentials=make_credentials(), block=True)
        service = build_service(extractor)

        async def scenario():
            first = asyncio.create_task(service.refresh())
            await asyncio.sleep(0)
            assert service.is_refreshing is True
            second = await service.refresh()
            extractor.release.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert second == {"success": False, "message": REFRESH_IN_PROGRESS_MESSAGE}
        assert first["success"] is True
        assert extractor.calls == 1
        assert service.is_refreshing is False

    def test_check_and_refresh_skips_fresh_credentials(self, build_service, settings):
        _store_record(settings, accessKey="ASIA1", secretKey="s", expiresAt="2025-06-01T14:00:00.000Z")
        extractor = FakeExtractor()
        service = build_service(extractor)

        assert asyncio.run(service.check_and_refresh()) is False
        assert extractor.calls == 0

    def test_check_and_refresh_refreshes_when_due(self, build_service, settings, make_credentials):
        _store_record(settings, accessKey="ASIA1", secretKey="s", expiresAt="2025-06-01T12:20:00.000Z")
        service = build_service(FakeExtractor(credentials=make_credentials(access_key="ASIANEW")))

        assert asyncio.run(service.check_and_refresh()) is True
        assert json.loads(settings.values["aws_config"])["accessKey"] == "ASIANEW"

    def test_check_and_refresh_never_raises(self, build_service):
        service = build_service(FakeExtractor(error=RuntimeError("boom")))
        assert asyncio.run(service.check_and_refresh("Auto")) is False


class TestStatusReporter:

    def test_missing(self, build_service):
        status = asyncio.run(build_service(FakeExtractor()).get_status())
        assert status["status"] == "missing"
        assert status["isRefreshing"] is False

    def test_invalid_without_expiry(self, build_service, settings):
        _store_record(settings, accessKey="ASIA1", secretKey="s")
        status = asyncio.run(build_service(FakeExtractor()).get_status())
        assert status["status"] == "invalid"

    @pytest.mark.parametrize("minutes,expected_status,expected_minutes", [
        (120, "valid", 120),
        (31, "valid", 31),
        (30, "expiring-soon", 30),
        (1, "expiring-soon", 1),
        (0, "expired", 0),
        (-5, "expired", 0),
    ])
    def test_thresholds(self, build_service, settings, minutes, expected_status, expected_minutes):
        expires = NOON + timedelta(minutes=minutes)
        _store_record(
            settings,
            accessKey="ASIA1",
            secretKey="s",
            expiresAt=expires.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
        )
        status = asyncio.run(build_service(FakeExtractor()).get_status())
        assert status["status"] == expected_status
        assert status["timeUntilExpiry"] == expected_minutes

    def test_time_until_expiry_is_floored(self, build_service, settings):
        _store_record(settings, accessKey="ASIA1", secretKey="s", expiresAt="2025-06-01T13:00:59.000Z")
        status = asyncio.run(build_service(FakeExtractor()).get_status())
        assert status["timeUntilExpiry"] == 60

    def test_last_refresh_unknown_when_absent(self, build_service, settings):
        _store_record(settings, accessKey="ASIA1", secretKey="s", expiresAt="2025-06-01T14:00:00.000Z")
        status = asyncio.run(build_service(FakeExtractor()).get_status())
        assert status["lastRefresh"] == "unknown"
        assert status["region"] == "eu-west-2"
        assert status["bucketName"] == "bedtimeblog-medialibrary"
        assert status["accountId"] == "007041844937"
        assert status["roleName"] == "BlogMediaLibraryAccess"

    def test_read_failure_reports_error(self, build_service, settings):
        settings.get_error = RuntimeError("db down")
        status = asyncio.run(build_service(FakeExtractor()).get_status())
        assert status == {"status": "error", "message": "db down"}

    def test_refresh_then_status(self, build_service, make_credentials):
        """Empty store, one check cycle, then the status reports a fresh set."""
        service = build_service(FakeExtractor(credentials=make_credentials(expires_at=NOON + timedelta(minutes=60))))

        async def scenario():
            refreshed = await service.check_and_refresh()
            return refreshed, await service.get_status()

        refreshed, status = asyncio.run(scenario())

        assert refreshed is True
        assert status["status"] == "valid"
        assert status["timeUntilExpiry"] == 60
        assert status["expiresAt"] == "2025-06-01T13:00:00.000Z"
        assert status["lastRefresh"] == "2025-06-01T12:00:00.000Z"


class TestScheduler:

    def test_start_requires_running_loop(self, build_service):
        with pytest.raises(RuntimeError):
            build_service(FakeExtractor()).start_auto_refresh()

    def test_startup_check_runs_once(self, build_service, settings, make_credentials):
        extractor = FakeExtractor(credentials=make_credentials())
        service = build_service(extractor, check_interval=3600, startup_delay=0.01)

        async def scenario():
            service.start_auto_refresh()
            await asyncio.sleep(0.3)
            running = service.auto_refresh_running
            service.stop_auto_refresh()
            return running

        assert asyncio.run(scenario()) is True
        assert extractor.calls == 1
        assert "aws_config" in settings.values
        assert service.auto_refresh_running is False

    def test_failures_do_not_stop_the_timer(self, build_service):
        extractor = FakeExtractor(error=RuntimeError("provider down"))
        service = build_service(extractor, check_interval=0.05, startup_delay=0.01)

        async def scenario():
            service.start_auto_refresh()
            await asyncio.sleep(0.4)
            running = service.auto_refresh_running
            service.stop_auto_refresh()
            return running

        assert asyncio.run(scenario()) is True
        assert extractor.calls >= 3

    def test_start_twice_keeps_single_timer(self, build_service):
        service = build_service(FakeExtractor(), check_interval=3600, startup_delay=3600)

        async def scenario():
            service.start_auto_refresh()
            first = service._interval_task
            service.start_auto_refresh()
            same = service._interval_task is first
            service.stop_auto_refresh()
            return same

        assert asyncio.run(scenario()) is True

    def test_stop_is_idempotent(self, build_service):
        service = build_service(FakeExtractor(), check_interval=3600, startup_delay=3600)

        async def scenario():
            service.stop_auto_refresh()
            service.start_auto_refresh()
            service.stop_auto_refresh()
            service.stop_auto_refresh()
            return service.auto_refresh_running

        assert asyncio.run(scenario()) is False


class TestBuildRefreshService:

    def test_wires_extractor_and_store(self, media_config, settings):
        service = build_refresh_service(config=media_config, settings=settings)

        assert isinstance(service.extractor, SSOCacheCredentialExtractor)
        assert service.store.key == "aws_config"
        assert service.config is media_config
