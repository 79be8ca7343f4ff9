"""Unit tests for configuration and engine wiring."""

import pytest
from pydantic import ValidationError

from chatledger.bootstrap import build_catalog, build_engine, build_repository
from chatledger.config import Settings
from chatledger.infrastructure.ai.echo import EchoReplyGenerator
from chatledger.infrastructure.memory.repository import InMemoryChatRepository


def make_settings(**overrides) -> Settings:
    values = {
        "app_env": "development",
        "storage_backend": "memory",
        "auth_provider": "dev",
        "reply_provider": "echo",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    """Tests for Settings parsing and validation."""

    def test_defaults(self):
        settings = make_settings()

        assert settings.history_default_limit == 50
        assert settings.history_max_limit == 200
        assert settings.reply_timeout_seconds == 60.0
        assert "echo" in settings.available_models

    def test_available_models_comma_separated(self):
        settings = make_settings(available_models="a, b ,c")

        assert settings.available_models == ["a", "b", "c"]

    def test_available_models_json_list(self):
        settings = make_settings(available_models='["a", "b"]')

        assert settings.available_models == ["a", "b"]

    def test_default_limit_above_max_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(history_default_limit=300, history_max_limit=200)

    def test_default_model_must_be_available(self):
        with pytest.raises(ValidationError):
            make_settings(available_models="a,b", default_model="c")

    def test_cors_origins_parsing(self):
        settings = make_settings(cors_origins="http://a.test,http://b.test")

        assert settings.cors_origins == ["http://a.test", "http://b.test"]


class TestProductionSettings:
    """Production refuses insecure settings."""

    def production(self, **overrides) -> Settings:
        values = {
            "app_env": "production",
            "auth_provider": "jwt",
            "jwt_secret": "a-very-long-production-secret",
            "storage_backend": "database",
            "database_url": "postgresql+asyncpg://prod:prod@db:5432/chatledger",
            "cors_origins": "https://chat.example.com",
        }
        values.update(overrides)
        return make_settings(**values)

    def test_valid_production(self):
        assert self.production().is_production

    @pytest.mark.parametrize(
        "overrides",
        [
            {"auth_provider": "dev"},
            {"jwt_secret": ""},
            {"storage_backend": "memory"},
            {"app_debug": True},
            {"cors_origins": "*"},
        ],
    )
    def test_insecure_production_rejected(self, overrides):
        with pytest.raises(ValidationError):
            self.production(**overrides)


class TestBootstrap:
    """Tests for engine wiring."""

    def test_catalog_prefers_explicit_default(self):
        catalog = build_catalog(make_settings(available_models="a,b", default_model="b"))

        assert catalog.default_model == "b"
        assert catalog.models == ("a", "b")

    def test_catalog_falls_back_to_provider_model(self):
        catalog = build_catalog(make_settings(available_models="a,echo"))

        assert catalog.default_model == "echo"

    def test_catalog_falls_back_to_first_model(self):
        catalog = build_catalog(
            make_settings(reply_provider="deepseek", deepseek_api_key="sk", available_models="a,b")
        )

        assert catalog.default_model == "a"

    @pytest.mark.asyncio
    async def test_memory_repository(self):
        repository = await build_repository(make_settings())

        assert isinstance(repository, InMemoryChatRepository)

    @pytest.mark.asyncio
    async def test_build_engine(self):
        settings = make_settings()

        engine = await build_engine(settings)
        service = engine.chat_service(settings)

        assert isinstance(engine.reply_generator, EchoReplyGenerator)
        assert service.history.max_limit == settings.history_max_limit
