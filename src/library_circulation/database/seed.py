"""
Demo catalog generation for local development.

Generates departments' worth of books with realistic titles and authors so
the circulation tools have something to lend. Data is deterministic for a
given seed. Every generated book starts with all copies on the shelf.
"""

import logging
import random

from faker import Faker

from .book_repository import BookCreateSchema, BookRepository
from .session import DatabaseManager

logger = logging.getLogger(__name__)

DEPARTMENTS = [
    "Computer Science",
    "Electrical Engineering",
    "Civil Engineering",
    "Mechanical Engineering",
    "Mathematics",
    "Physics",
    "Business Administration",
    "Medicine",
]

COVER_COLORS = ["#1e3a5f", "#7a1f2b", "#2f5d3a", "#5b3a7a", "#8a6d1f", "#2b2b2b"]


def generate_books(num_books: int = 50, seed: int = 42) -> list[BookCreateSchema]:
    """Build ``num_books`` catalog entries without touching the database."""
    fake = Faker()
    fake.seed_instance(seed)
    rng = random.Random(seed)

    books = []
    for _ in range(num_books):
        title = fake.catch_phrase().title()
        total = rng.randint(1, 5)
        books.append(
            BookCreateSchema(
                title=title[:255],
                author=fake.name(),
                department=rng.choice(DEPARTMENTS),
                description=fake.paragraph(nb_sentences=3),
                cover_color=rng.choice(COVER_COLORS),
                total_copies=total,
                available_copies=total,
            )
        )
    return books


def seed_database(db: DatabaseManager, num_books: int = 50, seed: int = 42) -> int:
    """
    Insert a generated catalog in one transaction.

    Returns:
        Number of books added
    """
    books = generate_books(num_books, seed)
    with db.session_scope() as session:
        repo = BookRepository(session)
        for book in books:
            repo.add_book(book)
    logger.info("Seeded %d books", len(books))
    return len(books)
