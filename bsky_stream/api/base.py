"""Data types shared by the Bluesky API layer."""

from dataclasses import dataclass, field



@dataclass(frozen=True)
class Author:
    """Account that created a post."""

    handle: str
    display_name: str | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class Post:
    """A single Bluesky post returned by a search."""

    author: Author
    uri: str
    cid: str
    created_at: str
    text: str
    langs: tuple[str, ...] = field(default_factory=tuple)

    @property
    def handle(self) -> str:
        return self.author.handle

    @property
    def display_name(self) -> str | None:
        return self.author.display_name

    @property
    def avatar(self) -> str | None:
        return self.author.avatar
