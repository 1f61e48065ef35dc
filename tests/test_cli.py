from pathlib import Path

import pytest
from click.testing import CliRunner

from reposync.cli import cli


@pytest.fixture
def env(tmp_path: Path, remote) -> dict[str, str]:
    return {
        "GITHUB_OWNER": "acme",
        "GITHUB_REPO": "docs",
        "GITHUB_BRANCH": "main",
        "GITHUB_PATH": "guides",
        "GITHUB_API_TOKEN": "t0ken",
        "REPOSYNC_BASE_DIR": str(tmp_path / "mirrors"),
        "REPOSYNC_REMOTE_BASE_URL": remote.base_url,
    }


def test_sync_then_resync(env: dict[str, str], tmp_path: Path) -> None:
    runner = CliRunner()

    first = runner.invoke(cli, ["sync"], env=env)
    assert first.exit_code == 0, first.output
    assert "Scanned 2: 2 new/updated, 0 unchanged" in first.output
    assert (tmp_path / "mirrors" / "acme" / "docs.knowledge.json").exists()

    second = runner.invoke(cli, ["sync"], env=env)
    assert second.exit_code == 0, second.output
    assert "Everything up to date!" in second.output


def test_status(env: dict[str, str]) -> None:
    runner = CliRunner()
    before = runner.invoke(cli, ["status"], env=env)
    assert "not cloned" in before.output
    assert "No sync history." in before.output

    runner.invoke(cli, ["sync"], env=env)
    after = runner.invoke(cli, ["status"], env=env)
    assert after.exit_code == 0, after.output
    assert "(branch main)" in after.output
    assert "Records: 2" in after.output


def test_commit(env: dict[str, str], tmp_path: Path, remote) -> None:
    source = tmp_path / "new.md"
    source.write_text("from the cli\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["commit", "-m", "CLI edit", f"guides/new.md={source}"], env=env)

    assert result.exit_code == 0, result.output
    assert remote.show("main", "guides/new.md") == "from the cli"


def test_invalid_config_exits_with_error(env: dict[str, str]) -> None:
    env = dict(env, GITHUB_OWNER="")

    result = CliRunner().invoke(cli, ["sync"], env=env)

    assert result.exit_code == 1
    assert "GitHub configuration validation failed" in result.output


def test_bad_edit_argument(env: dict[str, str]) -> None:
    result = CliRunner().invoke(cli, ["commit", "-m", "x", "no-separator"], env=env)

    assert result.exit_code == 2
    assert "REPO_PATH=LOCAL_FILE" in result.output


def test_pr(env: dict[str, str], tmp_path: Path, remote, github, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("reposync.writeback.GitHubClient", lambda token, base_url: github.client(token, base_url))
    source = tmp_path / "proposal.md"
    source.write_text("proposed\n", encoding="utf-8")

    result = CliRunner().invoke(
        cli,
        ["pr", "-t", "Propose guide", "-b", "auto/cli-1", "--body", "from the cli", f"guides/c.md={source}"],
        env=env,
    )

    assert result.exit_code == 0, result.output
    assert "Opened pull request #7: https://github.com/acme/docs/pull/7" in result.output
    assert remote.show("auto/cli-1", "guides/c.md") == "proposed"
    assert len(github.requests) == 1
    assert github.requests[0].headers["Authorization"] == "token t0ken"


def test_pr_rejected_exits_with_error(
    env: dict[str, str], tmp_path: Path, github, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("reposync.writeback.GitHubClient", lambda token, base_url: github.client(token, base_url))
    github.statuses = [422]
    source = tmp_path / "proposal.md"
    source.write_text("proposed\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["pr", "-t", "Propose", "-b", "auto/cli-2", f"guides/c.md={source}"], env=env)

    assert result.exit_code == 1
    assert "pull_request_rejected" in result.output.lower()


def test_empty_commit_message_is_a_usage_error(env: dict[str, str], tmp_path: Path) -> None:
    source = tmp_path / "new.md"
    source.write_text("x\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["commit", "-m", "", f"guides/new.md={source}"], env=env)

    assert result.exit_code == 2
    assert "Invalid CommitSpec" in result.output
    assert not (tmp_path / "mirrors" / "acme" / "docs").exists()


def test_empty_pr_title_is_a_usage_error(env: dict[str, str], tmp_path: Path) -> None:
    source = tmp_path / "new.md"
    source.write_text("x\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["pr", "-t", "", "-b", "auto/x", f"guides/new.md={source}"], env=env)

    assert result.exit_code == 2
    assert "Invalid PullRequestSpec" in result.output
    assert "title" in result.output


def test_status_on_a_directory_that_is_not_a_repository(env: dict[str, str], tmp_path: Path) -> None:
    (tmp_path / "mirrors" / "acme" / "docs").mkdir(parents=True)

    result = CliRunner().invoke(cli, ["status"], env=env)

    assert result.exit_code == 0, result.output
    assert "(not a git repository)" in result.output


def test_owner_with_path_separators_is_rejected(env: dict[str, str], tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["sync"], env=dict(env, GITHUB_OWNER="../../escape"))

    assert result.exit_code == 1
    assert "GITHUB_OWNER" in result.output
    assert not (tmp_path / "escape").exists()
