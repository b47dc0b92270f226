"""
Comment operations for the multisite schema
"""

import sqlite3
from typing import Dict, Any, List, Iterator

from .database import SiteContext
from .errors import CommentInsertError

# Fields copied when a comment is recreated on another site
COMMENT_FIELDS = [
    "comment_author",
    "comment_author_email",
    "comment_author_url",
    "comment_content",
    "comment_type",
    "comment_parent",
    "user_id",
    "comment_author_IP",
    "comment_agent",
    "comment_date",
    "comment_date_gmt",
    "comment_approved",
]


def get_comments(ctx: SiteContext, post_id: int) -> List[sqlite3.Row]:
    """Comments attached to a post, oldest first"""
    return ctx.conn.execute(
        f"SELECT * FROM {ctx.table('comments')} WHERE comment_post_ID = ? "
        "ORDER BY comment_ID",
        (post_id,),
    ).fetchall()


def get_comment_meta(ctx: SiteContext, comment_id: int) -> List[sqlite3.Row]:
    return ctx.conn.execute(
        f"SELECT * FROM {ctx.table('commentmeta')} WHERE comment_id = ? ORDER BY meta_id",
        (comment_id,),
    ).fetchall()


def iter_comment_ids(ctx: SiteContext) -> Iterator[int]:
    for row in ctx.conn.execute(f"SELECT comment_ID FROM {ctx.table('comments')}"):
        yield row["comment_ID"]


def insert_comment(ctx: SiteContext, post_id: int, comment_data: Dict[str, Any]) -> int:
    """Create a comment on post_id and return the new comment ID

    Keeps the post's comment_count in step. Raises CommentInsertError when
    the post does not exist on this site or the row cannot be written.
    """
    post_row = ctx.conn.execute(
        f"SELECT ID FROM {ctx.table('posts')} WHERE ID = ?", (post_id,)
    ).fetchone()
    if post_row is None:
        raise CommentInsertError(f"Post {post_id} does not exist on site {ctx.blog_id}")

    data = {
        k: v for k, v in comment_data.items() if k in COMMENT_FIELDS and v is not None
    }
    data["comment_post_ID"] = post_id
    columns = ", ".join(data)
    placeholders = ", ".join("?" for _ in data)
    try:
        cursor = ctx.conn.execute(
            f"INSERT INTO {ctx.table('comments')} ({columns}) VALUES ({placeholders})",
            list(data.values()),
        )
        ctx.conn.execute(
            f"UPDATE {ctx.table('posts')} SET comment_count = comment_count + 1 "
            "WHERE ID = ?",
            (post_id,),
        )
        ctx.conn.commit()
    except sqlite3.Error as e:
        ctx.conn.rollback()
        raise CommentInsertError(
            f"Could not insert comment on post {post_id}: {e}"
        ) from e

    ctx.cache_delete(post_id, "posts")
    return cursor.lastrowid


def update_comment_meta(ctx: SiteContext, comment_id: int, meta_key: str, meta_value) -> int:
    """Set a meta value on a comment, replacing an existing value for the key"""
    table = ctx.table("commentmeta")
    row = ctx.conn.execute(
        f"SELECT meta_id FROM {table} WHERE comment_id = ? AND meta_key = ?",
        (comment_id, meta_key),
    ).fetchone()
    if row:
        ctx.conn.execute(
            f"UPDATE {table} SET meta_value = ? WHERE meta_id = ?",
            (meta_value, row["meta_id"]),
        )
        meta_id = row["meta_id"]
    else:
        cursor = ctx.conn.execute(
            f"INSERT INTO {table} (comment_id, meta_key, meta_value) VALUES (?, ?, ?)",
            (comment_id, meta_key, meta_value),
        )
        meta_id = cursor.lastrowid
    ctx.conn.commit()
    ctx.cache_delete(comment_id, "comment_meta")
    return meta_id
