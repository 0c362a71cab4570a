"""
Unit tests for CacheRegistry and Settings wiring.
"""

import pytest
from pydantic import ValidationError

from salesdash.services.registry import CacheRegistry
from salesdash.settings import Settings


@pytest.mark.unit
class TestCacheRegistry:
    def test_from_settings_uses_configured_ttls(self):
        settings = Settings(SALES_CACHE_TTL_SECONDS=60, USERS_CACHE_TTL_SECONDS=3600)

        registry = CacheRegistry.from_settings(settings)

        assert registry.sales.ttl.total_seconds() == 60
        assert registry.users.ttl.total_seconds() == 3600
        assert registry.sales is not registry.users

    def test_default_settings_keep_users_longer(self):
        registry = CacheRegistry.from_settings(Settings(_env_file=None))

        assert registry.sales.ttl.total_seconds() == 300
        assert registry.users.ttl > registry.sales.ttl

    def test_lookup_by_name(self, registry):
        assert registry.get("sales") is registry.sales
        assert registry.get("users") is registry.users
        assert registry.names() == ["sales", "users"]
        with pytest.raises(KeyError):
            registry.get("wallets")

    def test_iteration_yields_caches(self, registry):
        assert [cache.name for cache in registry] == ["sales", "users"]

    @pytest.mark.asyncio
    async def test_health_status_and_invalidate_all(self, registry, counting_fetch):
        await registry.sales.get_or_fetch(counting_fetch)
        await registry.users.get_or_fetch(counting_fetch)

        status = registry.get_health_status()
        assert status["sales"]["has_data"] is True
        assert status["users"]["ttl_seconds"] == 5 * 3600

        registry.invalidate_all()
        assert registry.sales.data is None
        assert registry.users.data is None


@pytest.mark.unit
class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SPREADSHEET_ID", "sheet-123")
        monkeypatch.setenv("SALES_CACHE_TTL_SECONDS", "120")
        monkeypatch.setenv("CACHE_DEBUG", "true")

        settings = Settings(_env_file=None)

        assert settings.spreadsheet_id == "sheet-123"
        assert settings.sales_cache_ttl_seconds == 120
        assert settings.cache_debug is True

    def test_defaults(self, monkeypatch):
        for name in ("RETRY_MAX_RETRIES", "RETRY_BASE_DELAY", "WRITE_MIN_DELAY"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.retry_max_retries == 3
        assert settings.retry_base_delay == 1.0
        assert settings.write_min_delay == 0.1

    def test_reads_dotenv_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("USERS_SHEET_NAME", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("USERS_SHEET_NAME=Accounts\nUNRELATED_KEY=1\n")

        settings = Settings(_env_file=env_file)

        assert settings.users_sheet_name == "Accounts"

    def test_field_names_accepted(self):
        settings = Settings(_env_file=None, retry_max_delay=2.5)

        assert settings.retry_max_delay == 2.5

    def test_invalid_ttl_rejected(self, monkeypatch):
        monkeypatch.setenv("SALES_CACHE_TTL_SECONDS", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
