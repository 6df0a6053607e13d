"""Tests for startup configuration and backend wiring."""

import asyncio
from unittest.mock import patch

import pytest

from conftest import FakeDocumentAPI
from isocanvas.app import configure, create_router
from isocanvas.core.config import Environment, SettingsError, settings
from isocanvas.repositories import LocalDocumentRepository, RemoteDocumentRepository


class TestConfigure:
    def test_production_with_local_api_blocks_startup(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)
        monkeypatch.setattr(settings, "api_url", "http://localhost:3000")
        with patch("isocanvas.app.setup_logging"):
            with pytest.raises(SettingsError):
                configure()

    def test_development_only_warns(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", Environment.DEVELOPMENT)
        monkeypatch.setattr(settings, "api_token", "")
        with patch("isocanvas.app.setup_logging") as setup:
            configure()
        setup.assert_called_once_with(log_level=settings.log_level, log_format=settings.log_format)

    def test_production_ready_config_has_no_problems(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)
        monkeypatch.setattr(settings, "api_url", "https://canvas.example.com")
        monkeypatch.setattr(settings, "api_token", "prod-token-value")
        monkeypatch.setattr(settings, "local_store_url", "sqlite:///./canvas.db")
        assert settings.validate_production_config() == []


class TestCreateRouter:
    def test_wires_both_backends(self):
        api = FakeDocumentAPI()
        router = create_router("sqlite://", transport=api.transport())
        assert isinstance(router.for_document("doc1"), RemoteDocumentRepository)
        assert isinstance(router.for_document("local:doc1"), LocalDocumentRepository)

    def test_local_backend_persists_versions(self):
        router = create_router("sqlite://", transport=FakeDocumentAPI().transport())
        repo = router.for_document("local:doc1")

        async def scenario():
            await repo.append("local:doc1", "first", "Notes", "text")
            docs = await repo.list_documents("local:doc1")
            await router.aclose()
            return docs

        assert [d.content for d in asyncio.run(scenario())] == ["first"]
