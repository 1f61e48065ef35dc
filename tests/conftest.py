import json
from pathlib import Path
from typing import Mapping

import httpx
import pytest
from ghrest import GitHubClient
from git import Actor, Repo

from reposync import SyncConfig

ACTOR = Actor("tester", "tester@example.com")


class RemoteBuilder:
    """Bare repository standing in for GitHub, plus a scratch clone to push from."""

    def __init__(self, root: Path, owner: str = "acme", repo: str = "docs", branch: str = "main") -> None:
        self.base_url = str(root / "remotes")
        self.branch = branch
        self.bare_path = root / "remotes" / owner / f"{repo}.git"
        self.bare = Repo.init(self.bare_path, bare=True, mkdir=True)
        self.bare.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
        self.work = Repo.init(root / "scratch", mkdir=True)
        self.work.create_remote("origin", str(self.bare_path))

    def push(self, files: Mapping[str, str | bytes], message: str = "update", branch: str | None = None) -> str:
        """Commit `path -> content` entries and push them to the bare repository."""
        root = Path(self.work.working_tree_dir)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        self.work.git.add(A=True)
        commit = self.work.index.commit(message, author=ACTOR, committer=ACTOR)
        self.work.git.push("origin", f"HEAD:refs/heads/{branch or self.branch}")
        return commit.hexsha

    def show(self, ref: str, path: str) -> str:
        return self.bare.git.show(f"{ref}:{path}")

    def has_branch(self, branch: str) -> bool:
        return branch in [head.name for head in self.bare.heads]

    def protect(self, refs_glob: str) -> None:
        """Install a pre-receive hook refusing pushes to refs matching ``refs_glob``."""
        hook = self.bare_path / "hooks" / "pre-receive"
        hook.parent.mkdir(exist_ok=True)
        hook.write_text(
            "#!/bin/sh\n"
            "while read old new ref; do\n"
            '  case "$ref" in\n'
            f'    {refs_glob}) echo "protected ref: $ref" >&2; exit 1 ;;\n'
            "  esac\n"
            "done\n"
            "exit 0\n"
        )
        hook.chmod(0o755)


class FakeGitHub:
    """
    Answers the branches and pulls endpoints.

    ``statuses`` are used in order for successive pull request calls, the
    last one repeating. Branch lookups find only names in ``branches``.
    """

    def __init__(self) -> None:
        self.statuses: list[int] = [201]
        self.branches: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.lookups: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.lookups.append(request)
            branch = request.url.path.split("/branches/", 1)[1]
            if branch in self.branches:
                return httpx.Response(200, json={"name": branch})
            return httpx.Response(404, json={"message": "Branch not found"})

        self.requests.append(request)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if status != 201:
            return httpx.Response(status, json={"message": "Validation Failed"})
        payload = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "number": 7,
                "url": "https://api.github.com/repos/acme/docs/pulls/7",
                "html_url": "https://github.com/acme/docs/pull/7",
                "state": "open",
                "title": payload["title"],
                "head": {"ref": payload["head"]},
                "base": {"ref": payload["base"]},
            },
        )

    def client(self, token: str = "t0ken", base_url: str | None = None) -> GitHubClient:
        return GitHubClient(token=token, base_url=base_url, transport=httpx.MockTransport(self.handler), min_wait=0)


@pytest.fixture
def remote(tmp_path: Path) -> RemoteBuilder:
    builder = RemoteBuilder(tmp_path)
    builder.push({"guides/a.md": "alpha\n", "guides/b.md": "beta\n", "README.md": "readme\n"}, "initial")
    return builder


@pytest.fixture
def config(tmp_path: Path, remote: RemoteBuilder) -> SyncConfig:
    return SyncConfig(
        owner="acme",
        repo="docs",
        branch="main",
        path="guides",
        token="t0ken",
        base_dir=tmp_path / "mirrors",
        remote_base_url=remote.base_url,
    )


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()
