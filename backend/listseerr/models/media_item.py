"""
Normalized media item shared by every provider fetcher.
"""
from dataclasses import dataclass, field
from typing import Optional
import enum


class MediaType(str, enum.Enum):
    MOVIE = "movie"
    TV = "tv"


@dataclass(frozen=True)
class MediaItem:
    """A movie or series identified by its TMDB id. Equal when id and kind match."""
    tmdb_id: int
    media_type: MediaType
    title: str = field(default="", compare=False)
    year: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        if isinstance(self.tmdb_id, bool) or not isinstance(self.tmdb_id, int) or self.tmdb_id <= 0:
            raise ValueError(f"MediaItem requires a positive TMDB id, got {self.tmdb_id!r}")
        # Frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "media_type", MediaType(self.media_type))

    def __str__(self):
        year = f" ({self.year})" if self.year else ""
        return f"{self.title}{year} [{self.media_type.value}:{self.tmdb_id}]"
