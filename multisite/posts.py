"""
Post operations for the multisite schema

Handles reading, paging and writing posts, attachments and post meta
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Iterator

from .database import SiteContext
from .errors import PostInsertError

# Scalar fields copied when a post is recreated on another site
POST_FIELDS = [
    "menu_order",
    "comment_status",
    "ping_status",
    "pinged",
    "post_author",
    "post_content",
    "post_date",
    "post_date_gmt",
    "post_excerpt",
    "post_name",
    "post_parent",
    "post_password",
    "post_status",
    "post_title",
    "post_type",
    "to_ping",
]

_INSERTABLE = set(POST_FIELDS) | {"guid", "post_mime_type"}


def _term_filter_sql(ctx: SiteContext) -> str:
    return (
        f"ID IN (SELECT tr.object_id FROM {ctx.table('term_relationships')} AS tr "
        f"JOIN {ctx.table('term_taxonomy')} AS tt "
        "ON tt.term_taxonomy_id = tr.term_taxonomy_id WHERE tt.term_id = ?)"
    )


def count_posts(ctx: SiteContext, post_type: str = "post", term_id: int = 0) -> int:
    """Count posts of a type, optionally restricted to one term

    Parameters:
        :ctx: site to read from
        :post_type: posts.post_type to match
        :term_id: when non-zero, only posts related to this term are counted
    """
    sql = f"SELECT COUNT(*) FROM {ctx.table('posts')} WHERE post_type = ?"
    params: List[Any] = [post_type]
    if term_id:
        sql += " AND " + _term_filter_sql(ctx)
        params.append(term_id)
    return ctx.conn.execute(sql, params).fetchone()[0]


def get_posts_after(
    ctx: SiteContext,
    last_id: int,
    limit: int,
    post_type: str = "post",
    term_id: int = 0,
) -> List[sqlite3.Row]:
    """Fetch the next page of posts whose ID is greater than last_id

    Parameters:
        :ctx: site to read from
        :last_id: highest ID already seen (0 to start)
        :limit: page size
        :post_type: posts.post_type to match
        :term_id: when non-zero, only posts related to this term are returned
    """
    sql = f"SELECT * FROM {ctx.table('posts')} WHERE post_type = ? AND ID > ?"
    params: List[Any] = [post_type, last_id]
    if term_id:
        sql += " AND " + _term_filter_sql(ctx)
        params.append(term_id)
    sql += " ORDER BY ID LIMIT ?"
    params.append(limit)
    return ctx.conn.execute(sql, params).fetchall()


def iter_post_batches(
    ctx: SiteContext, batch_size: int, post_type: str = "post", term_id: int = 0
) -> Iterator[List[sqlite3.Row]]:
    """Yield consecutive batches of posts keyed on a monotonically increasing ID.

    A batch shorter than batch_size is the last one, so posts inserted behind
    the cursor are never revisited and posts deleted ahead of it are skipped.
    """
    last_id = 0
    while True:
        batch = get_posts_after(ctx, last_id, batch_size, post_type, term_id)
        if not batch:
            return
        yield batch
        if len(batch) < batch_size:
            return
        last_id = batch[-1]["ID"]


def iter_post_ids(ctx: SiteContext, chunk_size: int) -> Iterator[int]:
    """Yield every post ID of a site, reading chunk_size rows at a time"""
    last_id = 0
    while True:
        rows = ctx.conn.execute(
            f"SELECT ID FROM {ctx.table('posts')} WHERE ID > ? ORDER BY ID LIMIT ?",
            (last_id, chunk_size),
        ).fetchall()
        for row in rows:
            yield row["ID"]
        if len(rows) < chunk_size:
            return
        last_id = rows[-1]["ID"]


def get_post(ctx: SiteContext, post_id: int) -> Optional[Dict[str, Any]]:
    """Read a single post as a dict, going through the object cache"""
    cached = ctx.cache_get(post_id, "posts")
    if cached is not None:
        return cached
    row = ctx.conn.execute(
        f"SELECT * FROM {ctx.table('posts')} WHERE ID = ?", (post_id,)
    ).fetchone()
    if row is None:
        return None
    post = dict(row)
    ctx.cache_set(post_id, post, "posts")
    return post


def get_post_meta(ctx: SiteContext, post_id: int) -> List[sqlite3.Row]:
    """All postmeta rows of a post, in insertion order"""
    return ctx.conn.execute(
        f"SELECT * FROM {ctx.table('postmeta')} WHERE post_id = ? ORDER BY meta_id",
        (post_id,),
    ).fetchall()


def get_attachments(ctx: SiteContext, post_id: int) -> List[sqlite3.Row]:
    """Attachment posts whose parent is post_id"""
    return ctx.conn.execute(
        f"SELECT * FROM {ctx.table('posts')} "
        "WHERE post_parent = ? AND post_type = 'attachment' ORDER BY ID",
        (post_id,),
    ).fetchall()


def insert_post(ctx: SiteContext, post_data: Dict[str, Any]) -> int:
    """Create a post and return its new ID

    Parameters:
        :ctx: site to write to
        :post_data: column -> value; unknown columns are ignored

    Raises PostInsertError when the row cannot be written.
    """
    data = {k: v for k, v in post_data.items() if k in _INSERTABLE and v is not None}
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    data.setdefault("post_date", now)
    data.setdefault("post_date_gmt", data["post_date"])
    data["post_modified"] = now
    data["post_modified_gmt"] = now

    columns = ", ".join(data)
    placeholders = ", ".join("?" for _ in data)
    try:
        cursor = ctx.conn.execute(
            f"INSERT INTO {ctx.table('posts')} ({columns}) VALUES ({placeholders})",
            list(data.values()),
        )
        ctx.conn.commit()
    except sqlite3.Error as e:
        ctx.conn.rollback()
        raise PostInsertError(f"Could not insert post into site {ctx.blog_id}: {e}") from e

    new_id = cursor.lastrowid
    if not new_id:
        raise PostInsertError(f"Site {ctx.blog_id} returned no ID for the new post")
    return new_id


def update_post_content(ctx: SiteContext, post_id: int, content: str) -> bool:
    """Replace a post's body. Returns False when the post does not exist."""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    cursor = ctx.conn.execute(
        f"UPDATE {ctx.table('posts')} SET post_content = ?, post_modified = ?, "
        "post_modified_gmt = ? WHERE ID = ?",
        (content, now, now, post_id),
    )
    ctx.conn.commit()
    ctx.cache_delete(post_id, "posts")
    return cursor.rowcount > 0


def update_post_meta(ctx: SiteContext, post_id: int, meta_key: str, meta_value) -> int:
    """Set a meta value on a post, replacing an existing value for the key

    Returns the meta_id written.
    """
    table = ctx.table("postmeta")
    row = ctx.conn.execute(
        f"SELECT meta_id FROM {table} WHERE post_id = ? AND meta_key = ?",
        (post_id, meta_key),
    ).fetchone()
    if row:
        ctx.conn.execute(
            f"UPDATE {table} SET meta_value = ? WHERE meta_id = ?",
            (meta_value, row["meta_id"]),
        )
        meta_id = row["meta_id"]
    else:
        cursor = ctx.conn.execute(
            f"INSERT INTO {table} (post_id, meta_key, meta_value) VALUES (?, ?, ?)",
            (post_id, meta_key, meta_value),
        )
        meta_id = cursor.lastrowid
    ctx.conn.commit()
    ctx.cache_delete(post_id, "post_meta")
    return meta_id
