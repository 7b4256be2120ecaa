"""Tests for gitops module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from git.exc import GitCommandError, InvalidGitRepositoryError

from plugin_installer.errors import SourceSyncError
from plugin_installer.gitops import SourceTree


def fake_repo(*shas: str) -> MagicMock:
    """A repo mock whose HEAD reports the given commits in turn."""
    repo = MagicMock()
    commits = [MagicMock(hexsha=sha) for sha in shas]
    type(repo.head).commit = PropertyMock(side_effect=commits)
    return repo


class TestSourceTree:
    """Tests for SourceTree."""

    def test_create(self, tmp_path: Path) -> None:
        """Test factory method."""
        tree = SourceTree.create(tmp_path)
        assert tree.root == tmp_path

    def test_not_a_repository(self, tmp_path: Path) -> None:
        """A plain directory is not a repository."""
        assert SourceTree.create(tmp_path).is_repository() is False

    @patch("plugin_installer.gitops.Repo")
    def test_is_repository(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """Repositories are found from any directory inside the clone."""
        assert SourceTree.create(tmp_path).is_repository() is True
        mock_repo.assert_called_once_with(tmp_path, search_parent_directories=True)

    @patch("plugin_installer.gitops.Repo")
    def test_pull_up_to_date(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """An unchanged HEAD reports up to date."""
        repo = fake_repo("a" * 40, "a" * 40)
        mock_repo.return_value = repo

        assert SourceTree.create(tmp_path).pull() == "up to date"
        repo.git.pull.assert_called_once_with("--ff-only")

    @patch("plugin_installer.gitops.Repo")
    def test_pull_advances(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """A moved HEAD reports the short commit range."""
        mock_repo.return_value = fake_repo("abc1234" + "0" * 33, "def5678" + "0" * 33)

        assert SourceTree.create(tmp_path).pull() == "abc1234..def5678"

    @patch("plugin_installer.gitops.Repo")
    def test_pull_diverged(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """A pull that cannot fast-forward raises SourceSyncError."""
        repo = fake_repo("a" * 40)
        repo.git.pull.side_effect = GitCommandError("pull", "Not possible to fast-forward")
        mock_repo.return_value = repo

        with pytest.raises(SourceSyncError, match="Could not fast-forward"):
            SourceTree.create(tmp_path).pull()

    @patch("plugin_installer.gitops.Repo")
    def test_pull_outside_repository(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """Pulling a non-repository raises SourceSyncError."""
        mock_repo.side_effect = InvalidGitRepositoryError(str(tmp_path))

        with pytest.raises(SourceSyncError, match="Not a git repository"):
            SourceTree.create(tmp_path).pull()

    @patch("plugin_installer.gitops.Repo")
    def test_pull_without_commits(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """An empty repository without commits cannot be pulled."""
        repo = MagicMock()
        type(repo.head).commit = PropertyMock(side_effect=ValueError("Reference at 'HEAD' does not exist"))
        mock_repo.return_value = repo

        with pytest.raises(SourceSyncError):
            SourceTree.create(tmp_path).pull()
