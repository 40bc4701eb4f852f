"""Paginated Bluesky post search.

The searchPosts endpoint returns matches newest first and has no usable
"more results" flag for our purposes, so pages are walked with the ``since``
filter instead of a cursor. ``since`` is inclusive of its boundary, which is
why every query asks for posts from one millisecond after the watermark.
"""

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import httpx

from bsky_stream.errors import ParseError, TransportError
from bsky_stream.logger import setup_logger
from .base import Author, Post
from .session import SessionManager

if TYPE_CHECKING:
    from bsky_stream.source.watermark import Watermark

logger = setup_logger()

SEARCH_ENDPOINT = "app.bsky.feed.searchPosts"

# maximum page size the searchPosts API accepts
# cf. https://docs.bsky.app/docs/api/app-bsky-feed-search-posts
MAX_PAGE_SIZE = 100

# Upper bound on pages fetched in a single fetch_new_posts call
DEFAULT_MAX_PAGES = 50


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp such as ``2024-09-30T19:40:02.943Z``.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with millisecond precision."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def increment_timestamp(value: str) -> str:
    """Return the timestamp one millisecond after ``value``.

    Sub-millisecond digits are truncated first, so the result is always on a
    millisecond boundary strictly after ``value``.
    """
    parsed = parse_timestamp(value)
    truncated = parsed.replace(microsecond=(parsed.microsecond // 1000) * 1000)
    return format_timestamp(truncated + timedelta(milliseconds=1))


def _parse_or_none(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def _require_str(data: dict, key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ParseError(f"Missing or invalid {context}.{key}")
    return value


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def parse_post(post_data: dict) -> Post:
    """Build a Post from one entry of a searchPosts response.

    Raises:
        ParseError: If a required field is missing or has the wrong type
    """
    if not isinstance(post_data, dict):
        raise ParseError("Post entry is not an object")

    author_data = post_data.get("author")
    record_data = post_data.get("record")
    if not isinstance(author_data, dict):
        raise ParseError("Missing or invalid post.author")
    if not isinstance(record_data, dict):
        raise ParseError("Missing or invalid post.record")

    author = Author(
        handle=_require_str(author_data, "handle", "author"),
        display_name=_optional_str(author_data, "displayName"),
        avatar=_optional_str(author_data, "avatar"),
    )

    created_at = _require_str(record_data, "createdAt", "record")
    try:
        parse_timestamp(created_at)
    except ValueError as e:
        raise ParseError(f"Invalid record.createdAt {created_at!r}") from e

    langs = record_data.get("langs", [])
    if not isinstance(langs, list) or not all(isinstance(lang, str) for lang in langs):
        raise ParseError("Invalid record.langs")

    return Post(
        author=author,
        uri=_require_str(post_data, "uri", "post"),
        cid=_require_str(post_data, "cid", "post"),
        created_at=created_at,
        text=_require_str(record_data, "text", "record"),
        langs=tuple(langs),
    )


class SearchPaginator:
    """Fetches every post newer than the watermark, oldest first."""

    def __init__(self, session: SessionManager, max_pages: int = DEFAULT_MAX_PAGES):
        """Initialize paginator.

        Args:
            session: Session manager supplying the bearer access token
            max_pages: Maximum pages to fetch per fetch_new_posts call
        """
        self.session = session
        self.http_client = session.http_client
        self.max_pages = max_pages

    def build_params(self, search_term: str, since: str | None, page_size: int) -> dict:
        """Build searchPosts query parameters.

        Args:
            search_term: Free text search query
            since: Timestamp of the newest post already processed, if any
            page_size: Maximum posts per page
        """
        params = {"q": search_term, "limit": page_size}
        if since:
            # search API is inclusive, so ask for posts strictly after the
            # last one we already have
            try:
                params["since"] = increment_timestamp(since)
            except ValueError:
                logger.error(f"Failed to parse watermark timestamp {since}")
        return params

    def search_page(self, search_term: str, since: str | None, page_size: int) -> list[dict]:
        """Fetch one page of raw search results, newest first.

        Raises:
            TransportError: If the request fails or the response is not usable
        """
        params = self.build_params(search_term, since, page_size)
        headers = {"Accept": "application/json"}
        token = self.session.current_access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"Submitting search {params}")
        try:
            response = self.http_client.get(SEARCH_ENDPOINT, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"Search request failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"Search response is not valid JSON: {e}") from e

        posts = data.get("posts") if isinstance(data, dict) else None
        if not isinstance(posts, list):
            raise TransportError("Search response has no posts list")
        return posts

    def fetch_new_posts(
        self,
        search_term: str,
        watermark: "Watermark",
        page_size: int = MAX_PAGE_SIZE,
    ) -> list[Post]:
        """Fetch all posts newer than the watermark, in chronological order.

        The watermark is advanced as each post is accepted. Pages are fetched
        until one adds nothing new, or until max_pages is reached.

        Args:
            search_term: Free text search query
            watermark: Timestamp of the newest post already processed
            page_size: Maximum posts per page

        Returns:
            Posts oldest first. Posts fetched before a transport failure are
            still returned.
        """
        results: list[Post] = []
        pages = 0
        num_before = -1

        while len(results) > num_before:
            if pages >= self.max_pages:
                logger.warning(
                    f"Stopping search for {search_term} after {pages} pages; "
                    "remaining posts will be fetched next poll"
                )
                break
            num_before = len(results)
            pages += 1

            since = watermark.value
            logger.info(f"Polling Bluesky for {search_term} posts using offset {since}")
            try:
                page = self.search_page(search_term, since, page_size)
            except TransportError as e:
                logger.error(f"Error while submitting search to Bluesky: {e}")
                break

            floor = _parse_or_none(since)
            latest = floor

            # posts are returned newest first
            for post_data in reversed(page):
                try:
                    post = parse_post(post_data)
                except ParseError as e:
                    logger.warning(f"Failed to parse Bluesky post - skipping post: {e}")
                    logger.debug(f"Skipped post data: {post_data}")
                    continue

                created = parse_timestamp(post.created_at)
                # Posts at the boundary were already emitted; posts sharing a
                # timestamp within this page are all kept
                if floor is not None and created <= floor:
                    continue
                if latest is not None and created < latest:
                    logger.debug(
                        f"Dropping out of order post {post.uri} created {post.created_at}, "
                        f"older than {format_timestamp(latest)} already taken from this page"
                    )
                    continue
                latest = created
                results.append(post)
                watermark.advance_to(post.created_at)

        logger.debug(f"Fetched {len(results)} new posts in {pages} pages")
        return results
