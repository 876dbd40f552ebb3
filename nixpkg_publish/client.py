"""Repository clients used to publish rendered manifests.

:class:`GitHubClient` drives the GitHub CLI (``gh``) through plumbum. Any
object implementing :class:`RepositoryClient` can be handed to the pipe;
pull requests additionally need :class:`PullRequestOpener`.
"""

from __future__ import annotations

import base64
import dataclasses
import sys
import typing as typ

from plumbum import local
from plumbum.commands import ProcessExecutionError

if typ.TYPE_CHECKING:
    from .config import CommitAuthor, RepositoryRef

__all__ = [
    "GitHubClient",
    "PullRequestOpener",
    "Repo",
    "RepositoryClient",
]

PULL_REQUEST_BODY = "Automated package update generated by nixpkg-publish."


@dataclasses.dataclass(slots=True, frozen=True)
class Repo:
    """Repository coordinates; an empty ``branch`` means the default branch."""

    owner: str
    name: str
    branch: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_ref(cls, ref: RepositoryRef) -> Repo:
        return cls(owner=ref.owner, name=ref.name, branch=ref.branch)


class RepositoryClient(typ.Protocol):
    """Write files to a repository."""

    def create_file(
        self,
        repo: Repo,
        author: CommitAuthor,
        content: str,
        path: str,
        message: str,
    ) -> None: ...


@typ.runtime_checkable
class PullRequestOpener(typ.Protocol):
    """Open pull requests between two repository branches."""

    def open_pull_request(
        self, base: Repo, head: Repo, title: str, *, draft: bool = False
    ) -> None: ...


class GitHubClient:
    """Publish files and pull requests with the ``gh`` CLI.

    Parameters
    ----------
    gh : BoundCommand, optional
        Command used instead of ``local["gh"]``.
    dry_run : bool, default=False
        Print the planned ``gh`` invocations without executing them.

    Attributes
    ----------
    created_file : bool
        ``True`` once :meth:`create_file` succeeded.
    path, content : str
        Repository path and content of the last file written.
    opened_pull_request : bool
        ``True`` once :meth:`open_pull_request` succeeded.
    """

    def __init__(self, *, gh: typ.Any = None, dry_run: bool = False) -> None:
        self._gh = gh
        self.dry_run = dry_run
        self.created_file = False
        self.path = ""
        self.content = ""
        self.opened_pull_request = False

    def create_file(
        self,
        repo: Repo,
        author: CommitAuthor,
        content: str,
        path: str,
        message: str,
    ) -> None:
        """Create or update ``path`` on ``repo``'s branch with ``content``.

        Raises
        ------
        ProcessExecutionError
            If ``gh`` returns a non-zero status.
        CommandNotFound
            If the ``gh`` executable is not available in ``PATH``.
        """
        endpoint = f"repos/{repo.full_name}/contents/{path}"
        if self.dry_run:
            branch = repo.branch or "<default branch>"
            print(f"[dry-run] gh api --method PUT {endpoint} (branch {branch})")
        else:
            if repo.branch:
                self._ensure_branch(repo)
            encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
            args = [
                "--method",
                "PUT",
                endpoint,
                "-f",
                f"message={message}",
                "-f",
                f"content={encoded}",
                "-f",
                f"committer[name]={author.name}",
                "-f",
                f"committer[email]={author.email}",
            ]
            if repo.branch:
                args.extend(["-f", f"branch={repo.branch}"])
            if sha := self._file_sha(repo, path):
                args.extend(["-f", f"sha={sha}"])
            self._api(*args)
        self.created_file = True
        self.path = path
        self.content = content

    def open_pull_request(
        self, base: Repo, head: Repo, title: str, *, draft: bool = False
    ) -> None:
        """Open a pull request from ``head`` into ``base``.

        An already open pull request for ``head`` is reused.
        """
        head_ref = (
            head.branch if head.owner == base.owner else f"{head.owner}:{head.branch}"
        )
        args = [
            "pr",
            "create",
            "--repo",
            base.full_name,
            "--head",
            head_ref,
            "--title",
            title,
            "--body",
            PULL_REQUEST_BODY,
        ]
        if base.branch:
            args.extend(["--base", base.branch])
        if draft:
            args.append("--draft")
        if self.dry_run:
            print(f"[dry-run] gh {' '.join(args[:6])} --title {title!r}")
        else:
            try:
                self._command()[args]()
            except ProcessExecutionError as exc:
                if "already exists" not in str(exc.stderr):
                    raise
                print(
                    f"::notice title=Pull Request::pull request for {head_ref} "
                    f"on {base.full_name} already exists",
                    file=sys.stderr,
                )
        self.opened_pull_request = True

    def _command(self) -> typ.Any:
        if self._gh is None:
            self._gh = local["gh"]
        return self._gh

    def _api(self, *args: str) -> str:
        return self._command()[("api", *args)]()

    def _file_sha(self, repo: Repo, path: str) -> str:
        endpoint = f"repos/{repo.full_name}/contents/{path}"
        if repo.branch:
            endpoint += f"?ref={repo.branch}"
        try:
            return self._api(endpoint, "--jq", ".sha").strip()
        except ProcessExecutionError as exc:
            if _is_not_found(exc):
                return ""
            raise

    def _ensure_branch(self, repo: Repo) -> None:
        try:
            self._api(f"repos/{repo.full_name}/branches/{repo.branch}", "--jq", ".name")
            return
        except ProcessExecutionError as exc:
            if not _is_not_found(exc):
                raise
        default = self._api(f"repos/{repo.full_name}", "--jq", ".default_branch").strip()
        sha = self._api(
            f"repos/{repo.full_name}/git/ref/heads/{default}", "--jq", ".object.sha"
        ).strip()
        self._api(
            "--method",
            "POST",
            f"repos/{repo.full_name}/git/refs",
            "-f",
            f"ref=refs/heads/{repo.branch}",
            "-f",
            f"sha={sha}",
        )
        print(f"Created branch '{repo.branch}' on {repo.full_name} from '{default}'")


def _is_not_found(exc: ProcessExecutionError) -> bool:
    stderr = str(exc.stderr)
    return "Not Found" in stderr or "HTTP 404" in stderr
