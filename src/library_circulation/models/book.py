"""
Book models for the Library Circulation service.

``Book`` is the catalog view of a title (descriptive metadata plus copy
counts). ``Availability`` is the inventory ledger's narrower view: just the
two counts the circulation rules depend on.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Book(BaseModel):
    """A title in the library catalog."""

    id: int | None = Field(
        None,
        description="Catalog identifier (assigned by the database)",
        ge=1,
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=255,
        examples=["Introduction to Algorithms", "Engineering Mathematics"],
    )

    author: str = Field(
        ...,
        description="Author display name",
        min_length=1,
        max_length=255,
    )

    department: str | None = Field(
        None,
        description="Owning academic department",
        max_length=100,
        examples=["Computer Science", "Civil Engineering"],
    )

    description: str | None = Field(None, max_length=2000)

    image_url: str | None = Field(None, max_length=500)

    cover_color: str | None = Field(
        None,
        description="Hex colour used when no cover image exists",
        pattern=r"^#[0-9a-fA-F]{6}$",
        examples=["#1e3a5f"],
    )

    total_copies: int = Field(
        default=1,
        description="Total number of physical copies owned by the library",
        ge=1,
    )

    available_copies: int = Field(
        default=1,
        description="Copies currently on the shelf",
        ge=0,
    )

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def validate_copies(self) -> "Book":
        """Ensure available copies doesn't exceed total copies."""
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    @property
    def checked_out_copies(self) -> int:
        return self.total_copies - self.available_copies

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 6,
                "title": "Introduction to Algorithms",
                "author": "Thomas H. Cormen",
                "department": "Computer Science",
                "total_copies": 3,
                "available_copies": 2,
            }
        },
    )


class Availability(BaseModel):
    """Copy counts for one book, as seen by the inventory ledger."""

    book_id: int
    total_copies: int = Field(..., ge=1)
    available_copies: int = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_copies(self) -> "Availability":
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0
