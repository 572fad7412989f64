"""Settings: env-driven, with ``.env`` support.

Every field can be overridden with an ``APPUPGEN_*`` environment
variable or a ``.env`` file in the working directory.

Examples
--------
Override via environment::

    export APPUPGEN_LOG_LEVEL=DEBUG
    export APPUPGEN_DEFAULT_PRE_PURGE=soft_purge
    export APPUPGEN_ERL_EXECUTABLE=/usr/local/bin/erl
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from appupgen.models.purge import PurgeMethod, PurgePolicy

# Applications shipped with Erlang/OTP itself; they are upgraded with the
# runtime, never by a generated appup.
OTP_APPLICATIONS = frozenset(
    {
        "asn1", "common_test", "compiler", "crypto", "debugger", "dialyzer",
        "diameter", "edoc", "eldap", "erl_docgen", "erl_interface", "erts",
        "et", "eunit", "ftp", "inets", "jinterface", "kernel", "megaco",
        "mnesia", "observer", "odbc", "os_mon", "parsetools", "public_key",
        "reltool", "runtime_tools", "sasl", "snmp", "ssh", "ssl", "stdlib",
        "syntax_tools", "tftp", "tools", "wx", "xmerl",
    }
)


class AppupSettings(BaseSettings):
    """Defaults for release discovery, comparison and generation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APPUPGEN_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Build layout
    release_dir: Path = Path("_build/default/rel")
    build_dir: Path = Path("_build/default")
    checkouts_dir: Path = Path("_checkouts")
    artifact_extension: str = ".beam"

    # Comparison
    volatile_chunks: frozenset[str] = frozenset({"CInf", "Abst", "Dbgi", "Line"})

    # Generation
    default_pre_purge: PurgeMethod = PurgeMethod.BRUTAL
    default_post_purge: PurgeMethod = PurgeMethod.BRUTAL
    strict_roles: bool = True
    platform_apps: frozenset[str] = OTP_APPLICATIONS

    # Supervisor introspection
    erl_executable: str = "erl"
    init_timeout_seconds: float = 30.0
    erl_code_paths: list[Path] = []

    @property
    def default_purge(self) -> PurgePolicy:
        return PurgePolicy(pre=self.default_pre_purge, post=self.default_post_purge)


# Module-level singleton, import as `from appupgen.config import settings`
settings = AppupSettings()
