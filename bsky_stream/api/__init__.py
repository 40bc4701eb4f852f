"""Bluesky XRPC API access: session handling and paginated search."""

from bsky_stream.errors import AuthError, BlueskyError, ParseError, TransportError
from .base import Author, Post
from .client import SearchPaginator, increment_timestamp, parse_post
from .session import Credential, Session, SessionManager

__all__ = [
    "Author",
    "AuthError",
    "BlueskyError",
    "Credential",
    "ParseError",
    "Post",
    "SearchPaginator",
    "Session",
    "SessionManager",
    "TransportError",
    "increment_timestamp",
    "parse_post",
]
