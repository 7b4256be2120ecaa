"""Install and synchronize Claude Code plugin bundles at global or project scope."""

__version__ = "0.1.0"

# Export protocol interfaces for type hints and dependency injection
from plugin_installer.protocols import (
    ConfirmCallback,
    FileSystem,
    PluginCatalog,
    SourceRepository,
)

__all__ = [
    "__version__",
    "ConfirmCallback",
    "FileSystem",
    "PluginCatalog",
    "SourceRepository",
]
