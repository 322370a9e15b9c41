"""
Database Schemas for the Musify catalog

Each Pydantic model represents a collection in the MongoDB database.
Collection name is the lowercase of the class name.

- Artist -> "artist"
- Album -> "album"
- Song -> "song"
- Category -> "category"
- ListenNow -> "listennow"

References to other documents are stored as string ids. The ``*Update``
models carry the same fields, all optional, for the PUT endpoints: only the
fields present in the request body are overwritten.
"""

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional, Type, get_args, get_origin


class Lyric(BaseModel):
    content: str = Field(..., min_length=1, description="Lyric line text")
    start_time: float = Field(0, ge=0, description="Line start, seconds")
    end_time: float = Field(0, ge=0, description="Line end, seconds")


class Artist(BaseModel):
    """
    Artists collection schema
    """
    name: str = Field(..., min_length=1, description="Artist name")
    profile: str = Field(..., min_length=1, description="Profile image URL")
    songs: List[str] = Field(default_factory=list, description="Song document IDs")


class Album(BaseModel):
    """
    Albums collection schema
    """
    name: str = Field(..., min_length=1, description="Album name")
    wallpaper: str = Field(..., min_length=1, description="Wallpaper image URL")
    songs: List[str] = Field(default_factory=list, description="Song document IDs")
    categories: List[str] = Field(default_factory=list, description="Category document IDs")


class Song(BaseModel):
    """
    Songs collection schema
    """
    name: str = Field(..., min_length=1, description="Song title")
    description: str = Field("", description="Free text description")
    url: str = Field(..., min_length=1, description="URL of the uploaded audio file")
    wallpaper: str = Field(..., min_length=1, description="Wallpaper image URL")
    duration: float = Field(0, ge=0, description="Duration in seconds, probed from the audio file")
    artistid: Optional[str] = Field(None, description="Artist document ID")
    albums: List[str] = Field(default_factory=list, description="Album document IDs")
    categories: List[str] = Field(default_factory=list, description="Category document IDs")
    lyrics: List[Lyric] = Field(default_factory=list, description="Timed lyric lines")


class Category(BaseModel):
    """
    Categories collection schema
    """
    name: str = Field(..., min_length=1, description="Category name")
    wallpaper: str = Field(..., min_length=1, description="Wallpaper image URL")
    albums: List[str] = Field(default_factory=list, description="Album document IDs")
    songs: List[str] = Field(default_factory=list, description="Song document IDs")


class ListenNow(BaseModel):
    """
    Listen-now shelf entries, read-only from the API
    """
    category: Optional[str] = Field(None, description="Category document ID")

    @field_validator("category", mode="before")
    @classmethod
    def category_id_as_string(cls, value):
        return str(value) if isinstance(value, ObjectId) else value


# ---------- PARTIAL UPDATES ----------

class ArtistUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    profile: Optional[str] = Field(None, min_length=1)
    songs: Optional[List[str]] = None


class AlbumUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    wallpaper: Optional[str] = Field(None, min_length=1)
    songs: Optional[List[str]] = None
    categories: Optional[List[str]] = None


class SongUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    url: Optional[str] = Field(None, min_length=1)
    wallpaper: Optional[str] = Field(None, min_length=1)
    artistid: Optional[str] = None
    albums: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    lyrics: Optional[List[Lyric]] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    wallpaper: Optional[str] = Field(None, min_length=1)
    albums: Optional[List[str]] = None
    songs: Optional[List[str]] = None


# ---------- FIELD TYPES ----------

def field_type(model: Type[BaseModel], path: str) -> Optional[type]:
    """
    Scalar type stored at a dotted field path, e.g. ``field_type(Song, "lyrics.start_time")``
    is ``float``. Lists and ``Optional`` are looked through; unknown paths give None.
    """
    current: Any = model
    for name in path.split("."):
        if not (isinstance(current, type) and issubclass(current, BaseModel)):
            return None
        info = current.model_fields.get(name)
        if info is None:
            return None
        current = _unwrap(info.annotation)
    return current if isinstance(current, type) else None


def _unwrap(annotation: Any) -> Any:
    while get_origin(annotation) is not None:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) != 1:
            return annotation
        annotation = args[0]
    return annotation
