"""Database seeder for comment API benchmark testing."""
import asyncio
import argparse
import random
import time

from comment_api.cache import cache
from comment_api.config import settings
from comment_api.database import engine, async_session, Base
from comment_api.exceptions import CacheUnavailableError
from comment_api.models import STATUS_ACTIVE, Comment

PHRASES = ["Great point!", "I disagree.", "Thanks for sharing.", "Source?",
           "This helped a lot.", "Could you elaborate?", "Same here.", "+1"]


async def seed(small: bool = False):
    num_posts = 10 if small else 200
    num_users = 10 if small else 50
    roots_per_post = 3 if small else 20
    max_replies = 2 if small else 5

    print(f"Seeding: {num_posts} posts x {roots_per_post} root comments, up to {max_replies} replies each")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    total = 0
    async with async_session() as session:
        for post_id in range(1, num_posts + 1):
            roots = []
            for _ in range(roots_per_post):
                root = Comment(
                    post_id=post_id,
                    user_id=random.randint(1, num_users),
                    content=random.choice(PHRASES),
                    status=STATUS_ACTIVE,
                )
                session.add(root)
                roots.append(root)
            # Flush to obtain root ids for the replies.
            await session.flush()
            total += len(roots)

            for root in roots:
                for _ in range(random.randint(0, max_replies)):
                    session.add(Comment(
                        post_id=post_id,
                        user_id=random.randint(1, num_users),
                        content=random.choice(PHRASES),
                        parent_id=root.id,
                    ))
                    total += 1
            await session.flush()

        await session.commit()

    # Drop any list snapshot left over from the previous dataset.
    await cache.connect()
    try:
        await cache.delete(settings.CACHE_KEY_COMMENTS)
    except CacheUnavailableError as exc:
        print(f"  WARNING: cached list not cleared ({exc})")
    finally:
        await cache.disconnect()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total}")


def main():
    parser = argparse.ArgumentParser(description="Seed the comment database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (10 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
