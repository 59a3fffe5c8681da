"""Tests for ShipwrightSettings."""

from pathlib import Path

from shipwright.core.settings import ShipwrightSettings


class TestShipwrightSettings:
    def test_defaults(self, tmp_path):
        settings = ShipwrightSettings(project_dir=tmp_path, _env_file=None)
        assert settings.platform_cli == "railway"
        assert settings.required_env == ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "CLERK_SECRET_KEY"]
        assert settings.required_files == ["railway.json", "Procfile", ".railwayignore"]
        assert settings.test_command == "npm run test:local"
        assert settings.state_path == tmp_path / ".railway-deployment.json"
        assert settings.lock_path == tmp_path / ".shipwright.lock"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SHIPWRIGHT_PLATFORM_CLI", "/opt/bin/railway")
        monkeypatch.setenv("SHIPWRIGHT_LOG_FORMAT", "json")
        settings = ShipwrightSettings(project_dir=tmp_path, _env_file=None)
        assert settings.platform_cli == "/opt/bin/railway"
        assert settings.log_format == "json"

    def test_target_url_from_railway_static_url(self, monkeypatch):
        monkeypatch.setenv("RAILWAY_STATIC_URL", "https://app.up.railway.app")
        settings = ShipwrightSettings(_env_file=None)
        assert settings.target_url == "https://app.up.railway.app"

    def test_resolve_target_url_precedence(self):
        settings = ShipwrightSettings(_env_file=None)
        assert settings.resolve_target_url() == "http://localhost:8080"
        assert settings.resolve_target_url("https://found.up.railway.app") == "https://found.up.railway.app"

        configured = ShipwrightSettings(target_url="https://configured.example", _env_file=None)
        assert configured.resolve_target_url() == "https://configured.example"
        assert configured.resolve_target_url("https://found.up.railway.app") == "https://found.up.railway.app"

    def test_extra_env_ignored(self, monkeypatch):
        monkeypatch.setenv("SHIPWRIGHT_NOT_A_FIELD", "x")
        settings = ShipwrightSettings(_env_file=None)
        assert isinstance(settings.project_dir, Path)
