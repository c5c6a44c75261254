"""
Parsing of user supplied GitHub repository locators.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace

from ..errors import ParseError, ParseErrorKind

DEFAULT_BRANCH = "main"
FALLBACK_BRANCH = "master"

_HOST_PREFIX = "github.com/"
_SCHEME_RE = re.compile(r"^https?://")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass(frozen=True)
class RepoReference:
    """Owner, repository, and branch named by a locator."""

    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    explicit_branch: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def with_branch(self, branch: str) -> "RepoReference":
        return replace(self, branch=branch, explicit_branch=True)


def parse_reference(raw: str) -> RepoReference:
    """
    Parse ``github.com/owner/repo[/tree/branch]`` into a ``RepoReference``.

    The scheme is optional and a trailing ``.git`` on the repository name is
    dropped. Branch names may contain slashes.
    """
    url = _SCHEME_RE.sub("", (raw or "").strip())
    if not url.startswith(_HOST_PREFIX):
        raise ParseError(ParseErrorKind.NOT_GITHUB_HOST, raw)

    parts = [part for part in url[len(_HOST_PREFIX):].split("/") if part]
    if len(parts) < 2:
        raise ParseError(ParseErrorKind.MISSING_REPO_SEGMENT, raw)

    owner = parts[0]
    repo = parts[1][:-4] if parts[1].endswith(".git") else parts[1]

    branch = DEFAULT_BRANCH
    explicit = False
    if len(parts) >= 4 and parts[2] == "tree":
        branch = "/".join(parts[3:])
        explicit = True

    if not _IDENTIFIER_RE.match(owner) or not _IDENTIFIER_RE.match(repo):
        raise ParseError(ParseErrorKind.INVALID_IDENTIFIER, raw)

    return RepoReference(owner=owner, repo=repo, branch=branch, explicit_branch=explicit)
