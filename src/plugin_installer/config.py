"""Configuration: environment inputs, derived paths and install requests.

`InstallerPaths` captures where things live (source tree, global scope base,
namespace). `InstallConfig` is the pure description of one install request;
the engine needs nothing else, so it can be produced by the interactive
collector, by CLI flags, or directly by tests.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from plugin_installer.errors import ResolutionError
from plugin_installer.types import Scope

ENV_HOME = "PLUGIN_INSTALLER_HOME"
ENV_SOURCE = "PLUGIN_INSTALLER_SOURCE"
ENV_NAMESPACE = "PLUGIN_INSTALLER_NAMESPACE"

DEFAULT_NAMESPACE = "plugin-installer"

HOST_DIR = ".claude"
PLUGINS_DIR = "plugins"
PROFILES_DIR = Path("installer") / "profiles"
PROVENANCE_MANIFEST = ".mcp-manifest.json"


@dataclass(frozen=True)
class InstallerPaths:
    """Locations of the source tree and both install scopes."""

    home: Path
    source_root: Path
    namespace: str = DEFAULT_NAMESPACE

    @classmethod
    def create(
        cls, home: Path, source_root: Path, namespace: str = DEFAULT_NAMESPACE
    ) -> InstallerPaths:
        """Create paths from explicit locations.

        Args:
            home: Base directory of the global scope.
            source_root: Root of the version-controlled source tree.
            namespace: Namespace used in cache paths and enabled-plugin keys.

        Returns:
            Configured InstallerPaths.
        """
        return cls(home=home, source_root=source_root, namespace=namespace)

    @classmethod
    def from_env(
        cls,
        source_root: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> InstallerPaths:
        """Create paths from environment variables.

        Args:
            source_root: Explicit source root, overrides the environment.
            environ: Environment mapping. Defaults to os.environ.

        Returns:
            InstallerPaths using PLUGIN_INSTALLER_* variables with defaults.

        Raises:
            ResolutionError: If no source root is given and the current
                directory has no plugins directory.
        """
        env = os.environ if environ is None else environ
        home = Path(env[ENV_HOME]).expanduser() if env.get(ENV_HOME) else Path.home()
        if source_root is None and env.get(ENV_SOURCE):
            source_root = Path(env[ENV_SOURCE]).expanduser()
        elif source_root is None:
            source_root = Path.cwd()
            if not (source_root / PLUGINS_DIR).is_dir():
                raise ResolutionError(
                    f"No {PLUGINS_DIR}/ directory in {source_root}; "
                    f"pass --source or set {ENV_SOURCE}"
                )
        namespace = env.get(ENV_NAMESPACE) or DEFAULT_NAMESPACE
        return cls(home=home, source_root=source_root.resolve(), namespace=namespace)

    @property
    def plugins_dir(self) -> Path:
        """Directory holding one subdirectory per plugin."""
        return self.source_root / PLUGINS_DIR

    @property
    def profiles_dir(self) -> Path:
        """Directory holding named profile definitions."""
        return self.source_root / PROFILES_DIR

    @property
    def host_dir(self) -> Path:
        """Global host configuration directory (~/.claude)."""
        return self.home / HOST_DIR

    @property
    def cache_root(self) -> Path:
        """Root of the versioned reference tree for this namespace."""
        return self.host_dir / "plugins" / "cache" / self.namespace

    @property
    def cache_base(self) -> Path:
        """Parent of all namespaces' reference trees."""
        return self.host_dir / "plugins" / "cache"

    @property
    def global_settings(self) -> Path:
        """Global hook registry and enabled-plugin registry."""
        return self.host_dir / "settings.json"

    @property
    def global_services(self) -> Path:
        """Global service registry."""
        return self.home / ".claude.json"

    @property
    def provenance_manifest(self) -> Path:
        """Service keys offered at global scope."""
        return self.cache_root / PROVENANCE_MANIFEST

    def project_root(self, project: Path) -> Path:
        """Project-scope destination root."""
        return project / HOST_DIR

    def project_settings(self, project: Path) -> Path:
        """Project-scope hook registry.

        Local settings, since merged hook commands carry absolute paths.
        """
        return project / HOST_DIR / "settings.local.json"

    def project_services(self, project: Path) -> Path:
        """Project-scope service registry."""
        return project / ".mcp.json"

    def plugin_key(self, plugin_name: str) -> str:
        """Enabled-plugin registry key for a plugin."""
        return f"{plugin_name}@{self.namespace}"


class InstallConfig(BaseModel):
    """A complete install request.

    Selection precedence is explicit plugins, then profile, then every
    plugin in the source tree.
    """

    model_config = ConfigDict(frozen=True)

    scope: Scope = Scope.GLOBAL
    project_path: Path | None = None
    profile: str | None = None
    plugins: list[str] = Field(default_factory=list)
    dry_run: bool = False

    @model_validator(mode="after")
    def _check_project_path(self) -> InstallConfig:
        if self.scope is Scope.PROJECT and self.project_path is None:
            raise ValueError("project_path is required when scope='project'")
        return self
