"""Persistence contract and the in-memory implementation."""

from civic_core_lib.repository.base import (
    IssueRepository,
    IssueTransaction,
    RepositoryError,
    StaleIssueError,
)
from civic_core_lib.repository.memory import InMemoryIssueRepository

__all__ = [
    "IssueRepository",
    "IssueTransaction",
    "RepositoryError",
    "StaleIssueError",
    "InMemoryIssueRepository",
]
