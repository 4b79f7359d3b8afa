"""
Persistence Layer for Posts

This module provides the small set of queries backing the GraphQL schema and
the render endpoint's preloaded state. Every function takes the data store
handle explicitly; there is no module-level connection.

Responsibilities:
-----------------
- Create the `posts` table on startup if it does not exist.
- List, fetch and insert posts.

Key Functions:
--------------
- `ensure_schema(store)`: Creates the `posts` table.
- `list_posts(store, limit)`: Most recent posts first.
- `get_post(store, post_id)`: One post or None.
- `create_post(store, title, body)`: Inserts and returns the new post.

Requirements:
-------------
- A `DataStore` handle in the `connected` state (`app.data.connection`).

Usage:
------
    from app.data.db_operations import list_posts

    posts = await list_posts(store, limit=5)

Logging:
--------
- Logs writes and schema setup; driver errors propagate as `DataStoreError`.
"""


import logging
from typing import List, Optional

from app.core.data_types import PostRecord
from app.data.connection import DataStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


async def ensure_schema(store: DataStore) -> None:
    """
    Creates the `posts` table if it does not exist yet.

    Args:
        store (DataStore): Connected data store handle.

    Raises:
        DataStoreError: If the statement fails.
    """
    await store.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id SERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            body TEXT NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    logger.info("Ensured posts table exists.")


async def list_posts(store: DataStore, limit: int = 10) -> List[PostRecord]:
    """
    Returns the most recent posts, newest first.

    Args:
        store (DataStore): Connected data store handle.
        limit (int): Maximum number of posts, clamped to `1..MAX_PAGE_SIZE`.

    Returns:
        List[PostRecord]: The posts.
    """
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    return await store.fetch_all(
        "SELECT id, title, body, created_at FROM posts ORDER BY created_at DESC, id DESC LIMIT %s;",
        (limit,),
    )


async def get_post(store: DataStore, post_id: int) -> Optional[PostRecord]:
    """Returns the post with `post_id`, or None when it does not exist."""
    return await store.fetch_one(
        "SELECT id, title, body, created_at FROM posts WHERE id = %s;",
        (post_id,),
    )


async def create_post(store: DataStore, title: str, body: str) -> PostRecord:
    """
    Inserts a post and returns the stored row.

    Args:
        store (DataStore): Connected data store handle.
        title (str): Post title; surrounding whitespace is stripped.
        body (str): Post body.

    Returns:
        PostRecord: The inserted row including `id` and `created_at`.

    Raises:
        ValueError: If the title is empty.
    """
    title = title.strip()
    if not title:
        raise ValueError("Post title must not be empty")

    row = await store.fetch_one(
        "INSERT INTO posts (title, body) VALUES (%s, %s) RETURNING id, title, body, created_at;",
        (title, body),
    )
    logger.info(f"Inserted post {row['id']} into database.")
    return row
