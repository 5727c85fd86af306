"""
Infrastructure layer for configrepo.

Contains abstractions for external systems:
- GitHubClient: GitHub Git data and repositories API access
- RefContentFetcher: File reads pinned to one ref

These provide clean interfaces that can be mocked for testing.
"""

from .github_client import GitHubClient, RateLimitStatus, normalize_ref, branch_name
from .contents import ContentFetcher, RefContentFetcher

__all__ = [
    'GitHubClient',
    'RateLimitStatus',
    'normalize_ref',
    'branch_name',
    'ContentFetcher',
    'RefContentFetcher',
]
