"""
Tests for git adapters — GitRepository against real repositories, git_env,
and GitCommandError classification.
"""

import base64
from pathlib import Path

import pytest

from build_ledger.adapters.base import GitClient
from build_ledger.adapters.mock import MockGit
from build_ledger.adapters.vcs.git import GitRepository, git_env
from build_ledger.core.errors import GitCommandError
from conftest import clone, git


@pytest.fixture
def repo(work_repo: Path) -> GitRepository:
    r = GitRepository(work_repo, timeout=30)
    r.configure_identity("Ledger Test", "ledger@test.com")
    return r


# ── git_env ──────────────────────────────────────────────────────────


class TestGitEnv:
    def test_never_prompts(self):
        assert git_env()["GIT_TERMINAL_PROMPT"] == "0"

    def test_no_token_no_header(self, monkeypatch):
        monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
        assert "GIT_CONFIG_COUNT" not in git_env(None, "https://github.com/o/r.git")

    def test_token_injects_extraheader(self, monkeypatch):
        monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
        env = git_env("s3cr3t", "https://github.com/o/r.git")

        assert env["GIT_CONFIG_COUNT"] == "2"
        key = "http.https://github.com/.extraheader"
        assert env["GIT_CONFIG_KEY_0"] == key
        assert env["GIT_CONFIG_VALUE_0"] == ""
        assert env["GIT_CONFIG_KEY_1"] == key

        header = env["GIT_CONFIG_VALUE_1"]
        assert header.startswith("AUTHORIZATION: basic ")
        decoded = base64.b64decode(header.split()[-1]).decode()
        assert decoded == "x-access-token:s3cr3t"

    def test_token_appends_to_existing_config_vars(self, monkeypatch):
        monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
        monkeypatch.setenv("GIT_CONFIG_KEY_0", "core.autocrlf")
        monkeypatch.setenv("GIT_CONFIG_VALUE_0", "false")
        env = git_env("tok", "https://example.com:8443/o/r.git")

        assert env["GIT_CONFIG_COUNT"] == "3"
        assert env["GIT_CONFIG_KEY_0"] == "core.autocrlf"
        assert env["GIT_CONFIG_KEY_1"] == "http.https://example.com:8443/.extraheader"

    @pytest.mark.parametrize("url", ["git@github.com:o/r.git", "/srv/repo.git", ""])
    def test_token_ignored_for_non_http_remote(self, url, monkeypatch):
        monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
        assert "GIT_CONFIG_COUNT" not in git_env("tok", url)


# ── GitCommandError ──────────────────────────────────────────────────


class TestGitCommandError:
    def test_message(self):
        e = GitCommandError(["push", "origin", "x"], 1, "  fatal: boom \n")
        assert str(e) == "git push origin failed: fatal: boom"
        assert e.stderr == "fatal: boom"
        assert e.git_args == ["push", "origin", "x"]

    def test_message_without_stderr(self):
        assert "exit code 128" in str(GitCommandError(["fetch"], 128, ""))

    @pytest.mark.parametrize("stderr", [
        " ! [rejected]        b -> b (fetch first)",
        " ! [rejected]        b -> b (non-fast-forward)",
        " ! [remote rejected] b -> b (stale info)",
    ])
    def test_non_fast_forward(self, stderr):
        assert GitCommandError(["push"], 1, stderr).non_fast_forward

    @pytest.mark.parametrize("stderr", [
        "fatal: Authentication failed for 'https://github.com/o/r.git/'",
        "fatal: unable to access 'https://github.com/': Could not resolve host",
        "remote: Permission to o/r.git denied",
    ])
    def test_other_failures_are_not_rejections(self, stderr):
        assert not GitCommandError(["push"], 128, stderr).non_fast_forward


# ── GitRepository ────────────────────────────────────────────────────


class TestGitRepository:
    def test_is_git_client(self, repo: GitRepository):
        assert isinstance(repo, GitClient)
        assert repo.is_available()
        assert repo.remote_ref("build-numbers") == "origin/build-numbers"

    def test_configure_identity(self, repo: GitRepository, work_repo: Path):
        assert git(work_repo, "config", "user.name").strip() == "Ledger Test"
        assert git(work_repo, "config", "user.email").strip() == "ledger@test.com"

    def test_current_branch(self, repo: GitRepository):
        assert repo.current_branch() == "main"

    def test_remote_url(self, repo: GitRepository, remote_repo: Path):
        assert Path(repo.remote_url()).resolve() == remote_repo.resolve()

    def test_fetch_missing_branch(self, repo: GitRepository):
        assert repo.fetch_branch("build-numbers") is False

    def test_fetch_existing_branch(self, repo: GitRepository):
        assert repo.fetch_branch("main") is True

    def test_checkout_missing_branch_raises(self, repo: GitRepository):
        repo.fetch_branch("build-numbers")
        with pytest.raises(GitCommandError):
            repo.checkout("build-numbers")

    def test_create_orphan_branch(self, repo: GitRepository, work_repo: Path):
        repo.create_orphan_branch("build-numbers", "Initialize branch")

        assert repo.current_branch() == "build-numbers"
        assert not (work_repo / "README.md").exists()
        assert git(work_repo, "log", "--format=%s").splitlines() == ["Initialize branch"]
        # No parent: the branch shares no history with main
        assert git(work_repo, "rev-list", "--count", "HEAD").strip() == "1"
        assert git(work_repo, "ls-tree", "HEAD").strip() == ""

    def test_push_and_checkout_in_second_clone(
        self, repo: GitRepository, remote_repo: Path, tmp_path: Path,
    ):
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        repo.push("build-numbers", set_upstream=True)

        other = GitRepository(clone(remote_repo, tmp_path / "other"))
        assert other.fetch_branch("build-numbers") is True
        other.checkout("build-numbers")
        assert other.current_branch() == "build-numbers"
        assert other.head_sha() == repo.head_sha()

    def test_add_commit_show(self, repo: GitRepository, work_repo: Path):
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        (work_repo / "build_numbers.json").write_text('{"app": 1}\n')
        repo.add("build_numbers.json")
        sha = repo.commit("Update build number for app to 1")

        assert sha == repo.head_sha()
        assert len(sha) == 40
        assert repo.show_file("build-numbers", "build_numbers.json") == '{"app": 1}\n'
        assert repo.show_file("build-numbers", "missing.json") is None

    def test_sync_discards_local_commit(self, repo: GitRepository, work_repo: Path):
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        repo.push("build-numbers", set_upstream=True)
        pushed = repo.head_sha()

        (work_repo / "build_numbers.json").write_text('{"app": 1}\n')
        repo.add("build_numbers.json")
        repo.commit("local only")

        assert repo.sync("build-numbers") is True
        assert repo.head_sha() == pushed
        assert not (work_repo / "build_numbers.json").exists()

    def test_sync_missing_branch(self, repo: GitRepository):
        assert repo.sync("build-numbers") is False

    def test_stale_push_is_rejected_as_non_fast_forward(
        self, repo: GitRepository, remote_repo: Path, tmp_path: Path,
    ):
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        repo.push("build-numbers", set_upstream=True)

        other = GitRepository(clone(remote_repo, tmp_path / "other"))
        other.configure_identity("Other", "other@test.com")
        other.fetch_branch("build-numbers")
        other.checkout("build-numbers")
        (other.work_dir / "build_numbers.json").write_text('{"app": 1}\n')
        other.add("build_numbers.json")
        other.commit("other wins")
        other.push("build-numbers")

        (repo.work_dir / "build_numbers.json").write_text('{"app": 1}\n')
        repo.add("build_numbers.json")
        repo.commit("too late")
        with pytest.raises(GitCommandError) as exc:
            repo.push("build-numbers")
        assert exc.value.non_fast_forward

    def test_missing_work_dir_raises_git_error(self, tmp_path: Path):
        r = GitRepository(tmp_path / "nope")
        with pytest.raises(GitCommandError):
            r.configure_identity("a", "b")

    def test_repr(self, repo: GitRepository):
        assert "GitRepository" in repr(repo)

    def test_commit_trailers(self, repo: GitRepository, work_repo: Path):
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        (work_repo / "build_numbers.json").write_text('{"app": 1}\n')
        repo.add("build_numbers.json")
        repo.commit("Update build number for app to 1", trailers={"Build-Ledger-Run": "42.1.abc"})

        assert git(work_repo, "log", "-1", "--format=%s").strip() == "Update build number for app to 1"
        assert git(work_repo, "log", "-1", "--format=%b").strip() == "Build-Ledger-Run: 42.1.abc"

    def test_push_of_tip_remote_already_has_is_rejected(self, repo: GitRepository):
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        repo.push("build-numbers", set_upstream=True)

        with pytest.raises(GitCommandError) as exc:
            repo.push("build-numbers")
        assert exc.value.non_fast_forward

    def test_identical_commit_from_other_clone_is_rejected(
        self, repo: GitRepository, remote_repo: Path, tmp_path: Path, monkeypatch,
    ):
        """Same parent, content, identity and second → same SHA; the late push must fail."""
        monkeypatch.setenv("GIT_AUTHOR_DATE", "2026-01-01 12:00:00 +0000")
        monkeypatch.setenv("GIT_COMMITTER_DATE", "2026-01-01 12:00:00 +0000")
        repo.create_orphan_branch("build-numbers", "Initialize branch")
        repo.push("build-numbers", set_upstream=True)

        clones = []
        for name in ("one", "two"):
            c = GitRepository(clone(remote_repo, tmp_path / name))
            c.configure_identity("Ledger Test", "ledger@test.com")
            c.fetch_branch("build-numbers")
            c.checkout("build-numbers")
            (c.work_dir / "build_numbers.json").write_text('{"app": 1}\n')
            c.add("build_numbers.json")
            c.commit("Update build number for app to 1")
            clones.append(c)

        one, two = clones
        assert one.head_sha() == two.head_sha()
        one.push("build-numbers")
        with pytest.raises(GitCommandError) as exc:
            two.push("build-numbers")
        assert exc.value.non_fast_forward


# ── MockGit ──────────────────────────────────────────────────────────


class TestMockGit:
    def test_failure_injection_is_consumed(self, mock_git: MockGit):
        mock_git.set_failure("fetch_branch", "boom")
        with pytest.raises(GitCommandError, match="boom"):
            mock_git.fetch_branch("b")
        assert mock_git.fetch_branch("b") is False
        assert mock_git.call_count == 2

    def test_reset(self, mock_git: MockGit):
        mock_git.fetch_branch("b")
        mock_git.set_failure("push")
        mock_git.reset()
        assert mock_git.call_count == 0

    def test_checkout_writes_tracked_files(self, mock_git: MockGit, mock_remote):
        mock_remote.seed("b", {"build_numbers.json": "{}\n"})
        mock_git.fetch_branch("b")
        mock_git.checkout("b")
        assert (mock_git.work_dir / "build_numbers.json").read_text() == "{}\n"
