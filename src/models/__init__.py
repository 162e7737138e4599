"""
Data models and schemas for the application
"""

from .webhook import WebhookRequest, RepoInfo, extract_repo_info

__all__ = [
    "WebhookRequest",
    "RepoInfo",
    "extract_repo_info",
]
