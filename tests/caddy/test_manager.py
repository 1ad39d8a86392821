"""
Tests for CaddyConfigManager, the facade used by the API and project hooks.
"""

import asyncio

import pytest

from proxyplane.schemas import ProjectConfig, ProjectType
from proxyplane.services.caddy.errors import (
    MissingImportDirective,
    ReloadFailed,
    SlugCollisionError,
    ValidationFailed,
)
from proxyplane.services.caddy import CaddyConfigManager
from proxyplane.services.caddy.models import ReloadTier
from proxyplane.services.caddy.template_loader import TemplateRenderer
from proxyplane.services.caddy.templates import build_template_store


class TestInitialize:
    """Test startup initialization."""

    @pytest.mark.asyncio
    async def test_creates_layout_and_applies(self, settings, manager, admin_api):
        outcome = await manager.initialize()

        assert outcome.tier == ReloadTier.ADMIN_API
        assert settings.sites_dir.is_dir()
        assert f"import {settings.sites_dir}/*.caddy" in settings.caddyfile_path.read_text()
        assert len(admin_api.loads) == 1

    @pytest.mark.asyncio
    async def test_keeps_existing_fragments(self, settings, manager):
        settings.sites_dir.mkdir(parents=True)
        existing = settings.sites_dir / "old.caddy"
        existing.write_text("handle_path /app/old* {\n  }")

        await manager.initialize()

        assert existing.read_text() == "handle_path /app/old* {\n  }"

    @pytest.mark.asyncio
    async def test_missing_import_is_fatal(self, settings, fake_runner, admin_api):
        templates = build_template_store({"main-caddyfile": "{\n  {{GLOBAL_OPTIONS}}\n}\n"})
        manager = CaddyConfigManager(
            settings, runner=fake_runner, transport=admin_api.transport, templates=templates
        )

        with pytest.raises(MissingImportDirective):
            await manager.initialize()

        assert admin_api.loads == []


class TestProjectConfig:
    """Test project fragment lifecycle."""

    @pytest.mark.asyncio
    async def test_update_writes_fragment(self, settings, manager, next_project):
        await manager.initialize()

        outcome = await manager.update_project_config(next_project)

        assert outcome.success
        path = manager.get_project_config_path(next_project.id)
        assert path == settings.sites_dir / "proj-next.caddy"
        fragment = path.read_text()
        assert "shop.example.com {" in fragment
        assert "handle_path /app/storefront* {" in fragment

    @pytest.mark.asyncio
    async def test_update_is_repeatable(self, manager, react_project):
        await manager.update_project_config(react_project)
        first = manager.get_project_config_path(react_project.id).read_bytes()

        await manager.update_project_config(react_project)

        assert manager.get_project_config_path(react_project.id).read_bytes() == first

    @pytest.mark.asyncio
    async def test_invalid_fragment_restores_previous(self, manager, fake_runner, react_project):
        await manager.update_project_config(react_project)
        path = manager.get_project_config_path(react_project.id)
        previous = path.read_bytes()

        renamed = react_project.model_copy(update={"name": "Renamed"})
        fake_runner.set("validate", returncode=1, stderr="Error: bad fragment")

        with pytest.raises(ValidationFailed):
            await manager.update_project_config(renamed)

        assert path.read_bytes() == previous

    @pytest.mark.asyncio
    async def test_invalid_new_fragment_is_removed(self, manager, fake_runner, admin_api, react_project):
        fake_runner.set("validate", returncode=1, stderr="Error: bad fragment")

        with pytest.raises(ValidationFailed):
            await manager.update_project_config(react_project)

        assert not manager.get_project_config_path(react_project.id).exists()
        assert admin_api.loads == []

    @pytest.mark.asyncio
    async def test_reload_failure_propagates(self, manager, fake_runner, admin_api, react_project):
        admin_api.load_status = 500
        fake_runner.set("systemctl", returncode=1)
        fake_runner.set("reload", returncode=1)

        with pytest.raises(ReloadFailed):
            await manager.update_project_config(react_project)

        # validated config stays on disk for the next reload
        assert manager.get_project_config_path(react_project.id).exists()

    @pytest.mark.asyncio
    async def test_slug_collision_rejected(self, manager, react_project):
        await manager.update_project_config(react_project)
        twin = ProjectConfig(id="other", name="my app v2", type=ProjectType.NODE, port=4999)

        with pytest.raises(SlugCollisionError) as exc_info:
            await manager.update_project_config(twin)

        assert exc_info.value.slug == "my-app-v2"
        assert exc_info.value.owner_id == "proj-react"
        assert exc_info.value.status_code == 409
        assert not manager.get_project_config_path("other").exists()

    @pytest.mark.asyncio
    async def test_prefix_slug_is_not_a_collision(self, manager, react_project):
        await manager.update_project_config(react_project)
        other = ProjectConfig(id="other", name="My App", type=ProjectType.NODE, port=4999)

        outcome = await manager.update_project_config(other)

        assert outcome.success

    @pytest.mark.asyncio
    async def test_delete_removes_fragment_and_reloads(self, manager, admin_api, react_project):
        await manager.update_project_config(react_project)
        loads_before = len(admin_api.loads)

        await manager.delete_project_config(react_project.id)

        assert not manager.get_project_config_path(react_project.id).exists()
        assert len(admin_api.loads) == loads_before + 1

    @pytest.mark.asyncio
    async def test_delete_missing_fragment_is_noop(self, manager, fake_runner, admin_api):
        await manager.delete_project_config("does-not-exist")

        assert fake_runner.calls == []
        assert admin_api.requests == []

    @pytest.mark.asyncio
    async def test_delete_swallows_reload_failure(self, manager, fake_runner, admin_api, react_project):
        await manager.update_project_config(react_project)
        admin_api.load_status = 500
        fake_runner.set("systemctl", returncode=1)
        fake_runner.set("reload", returncode=1)

        await manager.delete_project_config(react_project.id)

        assert not manager.get_project_config_path(react_project.id).exists()

    @pytest.mark.asyncio
    async def test_delete_stays_deleted_when_validation_fails(self, settings, manager, fake_runner, react_project):
        await manager.update_project_config(react_project)
        caddyfile = settings.caddyfile_path.read_bytes()
        fake_runner.set("validate", returncode=1, stderr="Error: broken fragment elsewhere")

        await manager.delete_project_config(react_project.id)

        assert not manager.get_project_config_path(react_project.id).exists()
        assert settings.caddyfile_path.read_bytes() == caddyfile

    @pytest.mark.asyncio
    async def test_failed_regeneration_restores_fragment(self, settings, manager, admin_api, react_project):
        await manager.update_project_config(react_project)
        path = manager.get_project_config_path(react_project.id)
        previous = path.read_bytes()
        caddyfile = settings.caddyfile_path.read_bytes()
        loads_before = len(admin_api.loads)

        broken = build_template_store({"main-caddyfile": "{\n  {{GLOBAL_OPTIONS}}\n}\n"})
        manager.aggregator.renderer = TemplateRenderer(broken)
        renamed = react_project.model_copy(update={"name": "Renamed"})

        with pytest.raises(MissingImportDirective):
            await manager.update_project_config(renamed)

        assert path.read_bytes() == previous
        assert settings.caddyfile_path.read_bytes() == caddyfile
        assert len(admin_api.loads) == loads_before

    def test_project_url(self, manager, react_project):
        assert manager.get_project_url(react_project) == "http://localhost/app/my-app-v2"
        assert manager.get_project_url(react_project, "203.0.113.7") == "http://203.0.113.7/app/my-app-v2"


class TestConcurrency:
    """Reloads are serialized."""

    @pytest.mark.asyncio
    async def test_concurrent_updates_do_not_overlap(self, settings, admin_api):
        active = 0
        peak = 0

        async def slow_runner(cmd, timeout=None, **kwargs):
            from proxyplane.utils.async_subprocess import SubprocessResult

            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return SubprocessResult(returncode=0, stdout="", stderr="", args=list(cmd))

        manager = CaddyConfigManager(settings, runner=slow_runner, transport=admin_api.transport)
        projects = [
            ProjectConfig(id=f"p{i}", name=f"Project {i}", type=ProjectType.NODE, port=5000 + i)
            for i in range(5)
        ]

        await asyncio.gather(*(manager.update_project_config(p) for p in projects))

        assert peak == 1
        assert len(admin_api.loads) == 5
        assert sorted(p.name for p in settings.sites_dir.iterdir()) == [f"p{i}.caddy" for i in range(5)]

    @pytest.mark.asyncio
    async def test_concurrent_colliding_slugs_register_once(self, settings, manager):
        first = ProjectConfig(id="a", name="My App", type=ProjectType.NODE, port=5001)
        second = ProjectConfig(id="b", name="my app", type=ProjectType.NODE, port=5002)

        results = await asyncio.gather(
            manager.update_project_config(first),
            manager.update_project_config(second),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, SlugCollisionError)]
        assert len(errors) == 1
        assert errors[0].slug == "my-app"
        assert len(list(settings.sites_dir.glob("*.caddy"))) == 1


class TestProxySettings:
    @pytest.mark.asyncio
    async def test_defaults(self, manager):
        assert (await manager.get_proxy_settings()).disable_auto_https is True

    @pytest.mark.asyncio
    async def test_update_persists_and_regenerates(self, settings, manager):
        await manager.initialize()
        assert "auto_https off" in settings.caddyfile_path.read_text()

        updated = await manager.update_proxy_settings(disable_auto_https=False)

        assert updated.disable_auto_https is False
        assert (await manager.get_proxy_settings()).disable_auto_https is False
        assert "auto_https off" not in settings.caddyfile_path.read_text()

    @pytest.mark.asyncio
    async def test_rejected_update_keeps_previous_settings(self, settings, manager, fake_runner):
        await manager.initialize()
        fake_runner.set("validate", returncode=1, stderr="Error")

        with pytest.raises(ValidationFailed):
            await manager.update_proxy_settings(disable_auto_https=False)

        assert not settings.proxy_settings_path.exists()
        assert "auto_https off" in settings.caddyfile_path.read_text()

    @pytest.mark.asyncio
    async def test_refresh_main_caddyfile(self, settings, manager, admin_api):
        await manager.refresh_main_caddyfile()

        assert settings.caddyfile_path.exists()
        assert len(admin_api.loads) == 1


class TestCheckStatus:
    @pytest.mark.asyncio
    async def test_installed_and_running(self, manager, fake_runner):
        status = await manager.check_status()

        assert status.installed and status.running
        assert fake_runner.calls == [["caddy", "version"]]

    @pytest.mark.asyncio
    async def test_not_installed(self, manager, fake_runner):
        fake_runner.fail_with("version", RuntimeError("Subprocess execution failed: not found"))

        assert not (await manager.check_status()).installed

    @pytest.mark.asyncio
    async def test_not_running(self, manager, admin_api):
        admin_api.reachable = False

        status = await manager.check_status()

        assert status.installed
        assert not status.running
