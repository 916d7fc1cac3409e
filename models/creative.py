"""Creative inspiration content as a tagged union.

Each variant declares its own required fields, so an image without an
image URL or a quote without an author fails at construction time.

Example:
    >>> quote = creative_adapter.validate_python({
    ...     "type": "quote", "id": "q1", "category": "Innovation",
    ...     "content": "Stay hungry.", "author": "Stewart Brand",
    ...     "created_at": "2024-01-01T00:00:00Z",
    ... })
    >>> isinstance(quote, QuoteContent)
    True
"""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class _CreativeBase(BaseModel):
    id: str
    category: str
    created_at: datetime
    is_saved: bool = False


class ImageContent(_CreativeBase):
    type: Literal["image"] = "image"
    title: str
    description: str
    image_url: str
    source: str


class QuoteContent(_CreativeBase):
    type: Literal["quote"] = "quote"
    content: str
    author: str


class ConceptContent(_CreativeBase):
    type: Literal["concept"] = "concept"
    title: str
    description: str
    tags: list[str] = Field(min_length=1)


class VideoContent(_CreativeBase):
    type: Literal["video"] = "video"
    title: str
    description: str
    url: str
    source: str


CreativeContent = Annotated[
    Union[ImageContent, QuoteContent, ConceptContent, VideoContent],
    Field(discriminator="type"),
]

creative_adapter: TypeAdapter[CreativeContent] = TypeAdapter(CreativeContent)
creative_list_adapter: TypeAdapter[list[CreativeContent]] = TypeAdapter(list[CreativeContent])


def creative_title(item: CreativeContent) -> str:
    """Display title for any variant (quotes use the attributed author)."""
    if isinstance(item, QuoteContent):
        return f"Quote by {item.author}"
    return item.title


def creative_summary(item: CreativeContent) -> str:
    """Display summary for any variant."""
    if isinstance(item, QuoteContent):
        return item.content
    return item.description
