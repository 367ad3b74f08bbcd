"""Contract for collecting runtime information from CI environments."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from urllib.parse import ParseResult


class GitRefType(str, Enum):
    BRANCH = "branch"
    TAG = "tag"
    PULL_REQUEST = "pull_request"


class Introspector(ABC):
    """Collects repository and trigger details from a CI job environment."""

    @abstractmethod
    def repository_url(self) -> ParseResult:
        """URL of the repository the job runs for."""

    @abstractmethod
    def repository_name(self) -> str:
        """Name of the repository the job runs for."""

    @abstractmethod
    def event(self) -> GitRefType:
        """Event that triggered the job."""

    @abstractmethod
    def git_ref(self) -> str:
        """Fully formed git ref, e.g. refs/heads/master."""

    @abstractmethod
    def ref_name(self) -> str:
        """Short form of the git ref, e.g. master."""

    @abstractmethod
    def ref_type(self) -> str:
        """Type of the git ref the job runs for."""

    @abstractmethod
    def git_sha(self) -> str:
        """Commit SHA the job runs for."""