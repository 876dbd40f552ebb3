"""Tests for the ``gh`` backed repository client."""

from __future__ import annotations

import base64
import typing as typ

import pytest
from plumbum.commands import ProcessExecutionError

from nixpkg_publish.client import GitHubClient, PullRequestOpener, Repo
from nixpkg_publish.config import CommitAuthor, RepositoryRef

NOT_FOUND = "gh: Not Found (HTTP 404)"


class FakeGh:
    """Stand-in for ``local["gh"]`` answering through ``handler``."""

    def __init__(self, handler: typ.Callable[[tuple[str, ...]], str]) -> None:
        self.handler = handler
        self.calls: list[tuple[str, ...]] = []

    def __getitem__(self, args: typ.Iterable[str]) -> typ.Callable[[], str]:
        argv = tuple(args)

        def run() -> str:
            self.calls.append(argv)
            return self.handler(argv)

        return run


def _fail(argv: tuple[str, ...], stderr: str) -> typ.NoReturn:
    raise ProcessExecutionError(["gh", *argv], 1, "", stderr)


def test_repo_from_ref() -> None:
    repo = Repo.from_ref(RepositoryRef(owner="foo", name="nur", branch="main"))
    assert repo == Repo("foo", "nur", "main")
    assert repo.full_name == "foo/nur"


def test_github_client_opens_pull_requests() -> None:
    assert isinstance(GitHubClient(), PullRequestOpener)


def test_create_file_on_existing_branch() -> None:
    """New files are written with a PUT on the configured branch."""

    def handler(argv: tuple[str, ...]) -> str:
        if "contents/pkgs/foo.nix?ref=main" in argv[1]:
            _fail(argv, NOT_FOUND)
        return "main\n"

    gh = FakeGh(handler)
    client = GitHubClient(gh=gh)

    client.create_file(
        Repo("foo", "nur", "main"),
        CommitAuthor("bot", "bot@example.com"),
        "{ }",
        "pkgs/foo.nix",
        "foo: v1.2.0 -> v1.2.1",
    )

    assert gh.calls[0] == ("api", "repos/foo/nur/branches/main", "--jq", ".name")
    put = gh.calls[-1]
    assert put[:4] == ("api", "--method", "PUT", "repos/foo/nur/contents/pkgs/foo.nix")
    assert "message=foo: v1.2.0 -> v1.2.1" in put
    assert f"content={base64.b64encode(b'{ }').decode('ascii')}" in put
    assert "committer[name]=bot" in put
    assert "committer[email]=bot@example.com" in put
    assert "branch=main" in put
    assert not any(arg.startswith("sha=") for arg in put)
    assert client.created_file
    assert client.path == "pkgs/foo.nix"
    assert client.content == "{ }"


def test_create_file_creates_missing_branch() -> None:
    """A missing branch is forked from the default branch before writing."""
    answers = {
        "repos/foo/nur": "master\n",
        "repos/foo/nur/git/ref/heads/master": "abc123\n",
        "repos/foo/nur/contents/pkgs/foo.nix?ref=update-1.2.1": "deadbeef\n",
    }

    def handler(argv: tuple[str, ...]) -> str:
        if argv[1] == "repos/foo/nur/branches/update-1.2.1":
            _fail(argv, NOT_FOUND)
        return answers.get(argv[1], "{}")

    gh = FakeGh(handler)
    client = GitHubClient(gh=gh)

    client.create_file(
        Repo("foo", "nur", "update-1.2.1"), CommitAuthor(), "{ }", "pkgs/foo.nix", "msg"
    )

    assert (
        "api",
        "--method",
        "POST",
        "repos/foo/nur/git/refs",
        "-f",
        "ref=refs/heads/update-1.2.1",
        "-f",
        "sha=abc123",
    ) in gh.calls
    assert "sha=deadbeef" in gh.calls[-1]


def test_create_file_propagates_api_errors() -> None:
    def handler(argv: tuple[str, ...]) -> str:
        _fail(argv, "gh: Bad credentials (HTTP 401)")

    client = GitHubClient(gh=FakeGh(handler))

    with pytest.raises(ProcessExecutionError):
        client.create_file(Repo("foo", "nur"), CommitAuthor(), "{ }", "foo.nix", "msg")
    assert not client.created_file


def test_open_pull_request_arguments() -> None:
    gh = FakeGh(lambda argv: "https://github.com/nixos/nixpkgs/pull/1\n")
    client = GitHubClient(gh=gh)

    client.open_pull_request(
        Repo("nixos", "nixpkgs", "master"),
        Repo("foo", "nixpkgs", "update-1.2.1"),
        "foo: v1.2.0 -> v1.2.1",
        draft=True,
    )

    (argv,) = gh.calls
    assert argv[:6] == (
        "pr",
        "create",
        "--repo",
        "nixos/nixpkgs",
        "--head",
        "foo:update-1.2.1",
    )
    assert argv[argv.index("--title") + 1] == "foo: v1.2.0 -> v1.2.1"
    assert argv[argv.index("--base") + 1] == "master"
    assert argv[-1] == "--draft"
    assert client.opened_pull_request


def test_open_pull_request_reuses_existing(capsys: pytest.CaptureFixture[str]) -> None:
    """An already open pull request is reported rather than failing."""

    def handler(argv: tuple[str, ...]) -> str:
        _fail(argv, "a pull request for branch \"update\" already exists")

    client = GitHubClient(gh=FakeGh(handler))

    client.open_pull_request(Repo("foo", "nur"), Repo("foo", "nur", "update"), "t")

    assert client.opened_pull_request
    assert "::notice title=Pull Request::" in capsys.readouterr().err


def test_open_pull_request_propagates_other_errors() -> None:
    def handler(argv: tuple[str, ...]) -> str:
        _fail(argv, "GraphQL: Head sha can't be blank")

    client = GitHubClient(gh=FakeGh(handler))

    with pytest.raises(ProcessExecutionError):
        client.open_pull_request(Repo("foo", "nur"), Repo("foo", "nur", "update"), "t")


def test_dry_run_runs_nothing(capsys: pytest.CaptureFixture[str]) -> None:
    gh = FakeGh(lambda argv: "")
    client = GitHubClient(gh=gh, dry_run=True)

    client.create_file(Repo("foo", "nur"), CommitAuthor(), "{ }", "pkgs/foo.nix", "m")
    client.open_pull_request(Repo("foo", "nur"), Repo("foo", "nur", "update"), "t")

    out = capsys.readouterr().out
    assert gh.calls == []
    assert (
        "[dry-run] gh api --method PUT repos/foo/nur/contents/pkgs/foo.nix "
        "(branch <default branch>)"
    ) in out
    assert "[dry-run] gh pr create --repo foo/nur --head update --title 't'" in out
    assert client.created_file
    assert client.opened_pull_request
