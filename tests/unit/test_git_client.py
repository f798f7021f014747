"""Tests for GitClient against a real temporary repository."""

from unittest.mock import patch

import pytest

from entity_agents.integrations.git import GitClient, parse_porcelain
from entity_agents.utils.subprocess_utils import run_command


@pytest.fixture
def git(git_repo):
    return GitClient(git_repo)


class TestParsePorcelain:
    def test_modified_added_and_untracked(self):
        output = " M src/app.py\0A  src/new.py\0?? notes.txt\0"
        assert parse_porcelain(output) == ["src/app.py", "src/new.py", "notes.txt"]

    def test_rename_reports_new_path(self):
        assert parse_porcelain("R  new.py\0old.py\0?? x.txt\0") == ["new.py", "x.txt"]

    def test_paths_are_taken_verbatim(self):
        assert parse_porcelain("?? with space.txt\0?? caf\u00e9.txt\0") == ["with space.txt", "caf\u00e9.txt"]

    def test_empty(self):
        assert parse_porcelain("") == []


class TestCommitNoOp:
    def test_clean_tree_returns_empty_result(self, git):
        result = git.commit("fix: bug")

        assert result.hash is None
        assert result.files == []
        assert not result.committed

    def test_clean_tree_never_runs_git_commit(self, git):
        calls = []
        real_run = GitClient._run

        def spy(self, args, strip=True):
            calls.append(args[0])
            return real_run(self, args, strip)

        with patch.object(GitClient, "_run", spy):
            git.commit("fix: bug")

        assert "commit" not in calls


class TestCommit:
    def test_commit_returns_hash_and_files(self, git, git_repo):
        (git_repo / "app.py").write_text("print('hi')\n")
        (git_repo / "README.md").write_text("# changed\n")
        assert git.add(".")

        result = git.commit("feat: add app")

        assert result.committed
        assert len(result.hash) == 40
        assert sorted(result.files) == ["README.md", "app.py"]
        head = run_command(["git", "rev-parse", "HEAD"], cwd=git_repo).stdout.strip()
        assert result.hash == head

    def test_author_uses_entity_email(self, git, git_repo):
        (git_repo / "a.txt").write_text("a\n")
        git.add()

        git.commit("chore: a", author="Quinn")

        author = run_command(["git", "log", "-1", "--format=%an <%ae>"], cwd=git_repo).stdout.strip()
        assert author == "Quinn <noreply@entity.com>"

    def test_precomputed_files_skip_status(self, git, git_repo):
        (git_repo / "a.txt").write_text("a\n")
        git.add()
        calls = []
        real_run = GitClient._run

        def spy(self, args, strip=True):
            calls.append(args[0])
            return real_run(self, args, strip)

        with patch.object(GitClient, "_run", spy):
            result = git.commit("chore: a", files=["a.txt"])

        assert result.committed
        assert "status" not in calls

    def test_failed_commit_returns_error(self, git, git_repo):
        # Untracked but unstaged: git commit has nothing to commit and exits 1
        (git_repo / "loose.txt").write_text("x\n")

        result = git.commit("chore: nothing staged")

        assert result.hash is None
        assert result.files == ["loose.txt"]
        assert result.error


class TestStatus:
    def test_diff_names_returns_real_non_ascii_paths(self, git, git_repo):
        (git_repo / "caf\u00e9.txt").write_text("")
        (git_repo / "with space.txt").write_text("")

        names = git.diff_names()

        assert sorted(names) == ["caf\u00e9.txt", "with space.txt"]
        assert all((git_repo / name).exists() for name in names)

    def test_diff_names_after_staged_rename(self, git, git_repo):
        run_command(["git", "mv", "README.md", "GUIDE.md"], cwd=git_repo)

        assert git.diff_names() == ["GUIDE.md"]

    def test_diff_names_lists_untracked_files_in_new_dirs(self, git, git_repo):
        (git_repo / "pkg" / "sub").mkdir(parents=True)
        (git_repo / "pkg" / "sub" / "mod.py").write_text("")

        assert git.diff_names() == ["pkg/sub/mod.py"]

    def test_status_keeps_leading_space(self, git, git_repo):
        (git_repo / "README.md").write_text("# edited\n")

        result = git.status()

        assert result
        assert result.value == " M README.md"

    def test_failure_outside_repository(self, tmp_path):
        outside = tmp_path / "not-a-repo"
        outside.mkdir()
        client = GitClient(outside)

        result = client.status()

        assert not result
        assert result.error
        assert client.diff_names() == []


class TestBranches:
    def test_create_and_checkout(self, git):
        assert git.create_branch("infra/vpn")
        assert git.current_branch().value == "infra/vpn"

    @pytest.mark.parametrize("name", ["-rf", "a..b", "bad name", "x@{1}", ""])
    def test_invalid_branch_names_refused(self, git, name):
        result = git.create_branch(name)

        assert not result
        assert result.error

    def test_push_refuses_invalid_branch(self, git):
        result = git.push("--force")
        assert not result

    def test_push_without_remote_fails_softly(self, git):
        result = git.push()
        assert not result
