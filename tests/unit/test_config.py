"""Tests for settings: env-driven defaults."""

from __future__ import annotations

from pathlib import Path

from appupgen.config import OTP_APPLICATIONS, AppupSettings
from appupgen.models.purge import PurgeMethod, PurgePolicy


class TestAppupSettings:
    def test_defaults(self):
        config = AppupSettings()
        assert config.log_level == "INFO"
        assert config.artifact_extension == ".beam"
        assert config.strict_roles is True
        assert config.erl_executable == "erl"
        assert config.erl_code_paths == []

    def test_default_paths(self):
        config = AppupSettings()
        assert config.release_dir == Path("_build/default/rel")
        assert config.build_dir == Path("_build/default")
        assert config.checkouts_dir == Path("_checkouts")

    def test_volatile_chunks(self):
        assert AppupSettings().volatile_chunks == {"CInf", "Abst", "Dbgi", "Line"}

    def test_platform_apps_are_otp(self):
        config = AppupSettings()
        assert config.platform_apps == OTP_APPLICATIONS
        assert {"kernel", "stdlib", "sasl"} <= config.platform_apps

    def test_default_purge(self):
        assert AppupSettings().default_purge == PurgePolicy()

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("APPUPGEN_DEFAULT_PRE_PURGE", "soft_purge")
        monkeypatch.setenv("APPUPGEN_STRICT_ROLES", "false")
        monkeypatch.setenv("APPUPGEN_RELEASE_DIR", "/srv/rel")
        config = AppupSettings()
        assert config.default_pre_purge == PurgeMethod.SOFT
        assert config.default_purge == PurgePolicy(pre=PurgeMethod.SOFT, post=PurgeMethod.BRUTAL)
        assert config.strict_roles is False
        assert config.release_dir == Path("/srv/rel")

    def test_env_collections_are_json(self, monkeypatch):
        monkeypatch.setenv("APPUPGEN_PLATFORM_APPS", '["kernel"]')
        assert AppupSettings().platform_apps == {"kernel"}

    def test_erl_code_paths_from_env(self, monkeypatch):
        monkeypatch.setenv("APPUPGEN_ERL_CODE_PATHS", '["/deps/a/ebin", "/deps/b/ebin"]')
        assert AppupSettings().erl_code_paths == [Path("/deps/a/ebin"), Path("/deps/b/ebin")]
