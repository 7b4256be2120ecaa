"""Git operations on the plugin source tree."""

from __future__ import annotations

import logging
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from plugin_installer.errors import SourceSyncError

logger = logging.getLogger(__name__)


class SourceTree:
    """Version-control view of the source tree references point into."""

    def __init__(self, root: Path) -> None:
        """Initialize source tree.

        Args:
            root: Root of the source tree (or any directory inside a clone).

        Note:
            Prefer using factory method `create()` for construction.
        """
        self.root = root

    @classmethod
    def create(cls, root: Path) -> SourceTree:
        """Create a source tree view.

        Args:
            root: Root of the source tree.

        Returns:
            Configured SourceTree instance.
        """
        return cls(root=root)

    def is_repository(self) -> bool:
        """Check whether the source tree is inside a git clone.

        Returns:
            True if a repository is found.
        """
        try:
            self._open()
        except (InvalidGitRepositoryError, NoSuchPathError):
            return False
        return True

    def pull(self) -> str:
        """Fast-forward the current branch to its upstream.

        Returns:
            "up to date", or the old..new commit range.

        Raises:
            SourceSyncError: If the tree is not a clone or cannot fast-forward.
        """
        try:
            repo = self._open()
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise SourceSyncError(f"Not a git repository: {self.root}") from e

        try:
            before = repo.head.commit.hexsha
            repo.git.pull("--ff-only")
            after = repo.head.commit.hexsha
        except (GitCommandError, ValueError) as e:
            raise SourceSyncError(
                f"Could not fast-forward {self.root}. Please resolve manually: {e}"
            ) from e

        if before == after:
            logger.debug("Source tree already at %s", after[:7])
            return "up to date"
        logger.debug("Source tree advanced %s..%s", before[:7], after[:7])
        return f"{before[:7]}..{after[:7]}"

    def _open(self) -> Repo:
        return Repo(self.root, search_parent_directories=True)
