#!/usr/bin/env python3
"""
Demo Data Utility

This script manages demo data for the Book Review API:
- Seed the database with demo users, books and reviews
- Clear all users, books and reviews
- Show collection statistics
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from motor.motor_asyncio import AsyncIOMotorClient

from api.auth import hash_password
from api.config import config
from api.database import APIDatabaseService
from catalog.models import BookCreate, ReviewCreate, UserSignup
from utilities.logger import get_logger, setup_logging

logger = get_logger(__name__)

DEMO_PASSWORD = "123456"

DEMO_USERS = [
    {"name": "Alice Johnson", "email": "alice@example.com"},
    {"name": "Bob Smith", "email": "bob@example.com"},
    {"name": "Charlie Brown", "email": "charlie@example.com"},
]

# (creator index, book data)
DEMO_BOOKS = [
    (0, {
        "title": "The Midnight Library",
        "author": "Matt Haig",
        "genre": "Fiction",
        "description": (
            "Between life and death there is a library, and within that library, the shelves go on "
            "forever. Every book provides a chance to try another life you could have lived."
        ),
        "published_year": 2020,
        "isbn": "9780525559474",
    }),
    (1, {
        "title": "Dune",
        "author": "Frank Herbert",
        "genre": "Sci-Fi",
        "description": (
            "Set on the desert planet Arrakis, Dune is the story of the boy Paul Atreides, heir to a "
            "noble family tasked with ruling an inhospitable world."
        ),
        "published_year": 1965,
        "isbn": "9780441172719",
    }),
    (0, {
        "title": "The Name of the Wind",
        "author": "Patrick Rothfuss",
        "genre": "Fantasy",
        "description": (
            "The riveting first-person narrative of a young man who grows to be the most notorious "
            "magician his world has ever seen."
        ),
        "published_year": 2007,
        "isbn": "9780756404079",
    }),
    (2, {
        "title": "Educated",
        "author": "Tara Westover",
        "genre": "Biography",
        "description": (
            "A memoir about a young girl who, kept out of school, leaves her survivalist family and "
            "goes on to earn a PhD from Cambridge University."
        ),
        "published_year": 2018,
        "isbn": "9780399590504",
    }),
    (1, {
        "title": "The Seven Husbands of Evelyn Hugo",
        "author": "Taylor Jenkins Reid",
        "genre": "Fiction",
        "description": (
            "Reclusive Hollywood icon Evelyn Hugo finally decides to tell her life story, but only "
            "to one reporter, Monique Grant."
        ),
        "published_year": 2017,
        "isbn": "9781501161933",
    }),
]

# (reviewer index, book index, rating, comment)
DEMO_REVIEWS = [
    (1, 0, 5, "Absolutely beautiful and thought-provoking! This book made me reflect on life choices and possibilities."),
    (2, 0, 4, "A unique concept executed well. The philosophical elements really resonated with me."),
    (0, 1, 5, "A masterpiece of science fiction! The world-building is incredible and the story is epic."),
    (2, 1, 4, "Complex and rewarding read. Takes some time to get into but worth the effort."),
    (1, 2, 5, "Rothfuss is a master storyteller. The prose is beautiful and Kvothe is a compelling character."),
    (0, 3, 5, "Powerful and moving memoir. Tara Westover's journey is both heartbreaking and inspiring."),
    (1, 3, 4, "Eye-opening account of education and family. Well-written and engaging throughout."),
    (0, 4, 4, "Engaging and entertaining! Great character development and unexpected twists."),
    (2, 4, 5, "Couldn't put it down! Evelyn Hugo is such a fascinating character."),
]


async def seed_demo_data(db_service: APIDatabaseService):
    """Replace all data with the demo users, books and reviews."""
    print("\n🌱 SEEDING DATABASE")
    print("=" * 80)

    print("🧹 Clearing existing data...")
    await db_service.clear_collections()

    print("👥 Creating demo users...")
    password_hash = hash_password(DEMO_PASSWORD, config.bcrypt_rounds)
    users = []
    for user in DEMO_USERS:
        users.append(await db_service.create_user(
            UserSignup(name=user["name"], email=user["email"], password=DEMO_PASSWORD),
            password_hash
        ))
    print(f"✅ Created {len(users)} users")

    print("📚 Creating demo books...")
    books = []
    for creator_index, book in DEMO_BOOKS:
        books.append(await db_service.create_book(BookCreate(**book), users[creator_index]))
    print(f"✅ Created {len(books)} books")

    print("⭐ Creating demo reviews...")
    for user_index, book_index, rating, comment in DEMO_REVIEWS:
        await db_service.create_review(
            books[book_index].id,
            ReviewCreate(rating=rating, comment=comment),
            users[user_index]
        )
    print(f"✅ Created {len(DEMO_REVIEWS)} reviews")

    print("\n📊 Summary:")
    print(f"   Users: {len(users)}")
    print(f"   Books: {len(books)}")
    print(f"   Reviews: {len(DEMO_REVIEWS)}")
    print(f"\n🔐 Demo user credentials (password: {DEMO_PASSWORD}):")
    for user in users:
        print(f"   {user.email}")


async def clear_data(db_service: APIDatabaseService):
    """Delete every user, book and review."""
    print("\n🧹 CLEARING DATABASE")
    print("=" * 80)

    deleted = await db_service.clear_collections()
    for name, count in deleted.items():
        print(f"🗑️  {name.capitalize()} removed: {count}")


async def show_statistics(db_service: APIDatabaseService):
    """Show collection counts."""
    print("\n📊 DATABASE STATISTICS")
    print("=" * 80)

    health = await db_service.health_check()
    if health["status"] != "healthy":
        print(f"❌ Database unhealthy: {health.get('error')}")
        return

    print(f"👥 Users: {health['users_count']}")
    print(f"📚 Books: {health['books_count']}")
    print(f"⭐ Reviews: {health['reviews_count']}")


COMMANDS = {
    "seed": seed_demo_data,
    "clear": clear_data,
    "stats": show_statistics,
}


async def main():
    """Main function."""
    if len(sys.argv) < 2 or sys.argv[1].lower() not in COMMANDS:
        print("Usage: python seed.py [seed|clear|stats]")
        print()
        print("Commands:")
        print("  seed   - Replace all data with demo users, books and reviews")
        print("  clear  - Delete all users, books and reviews")
        print("  stats  - Show collection counts")
        sys.exit(1)

    command = sys.argv[1].lower()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    client = AsyncIOMotorClient(config.mongodb_url, tz_aware=True)
    try:
        db_service = APIDatabaseService(client[config.mongodb_database])
        await db_service.create_indexes()
        await COMMANDS[command](db_service)
    except Exception as e:
        logger.error("Seed command failed", command=command, error=str(e))
        print(f"❌ Error running {command}: {e}")
        sys.exit(1)
    finally:
        client.close()
        print("🔌 Database connection closed")


if __name__ == "__main__":
    asyncio.run(main())
