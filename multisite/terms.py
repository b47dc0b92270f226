"""
Term and taxonomy operations for the multisite schema
"""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from config import (
    DEFAULT_NETWORK_ID,
    DEFAULT_CATEGORY_NAME,
    DEFAULT_CATEGORY_SLUG,
)
from .database import SiteContext
from . import options


def get_term_taxonomies(ctx: SiteContext) -> List[sqlite3.Row]:
    """(term_id, taxonomy) for every term_taxonomy row of a site"""
    return ctx.conn.execute(
        f"SELECT term_id, taxonomy FROM {ctx.table('term_taxonomy')}"
    ).fetchall()


def insert_term(
    ctx: SiteContext,
    name: str,
    slug: str,
    taxonomy: str,
    term_id: Optional[int] = None,
    description: str = "",
    parent: int = 0,
    count: int = 0,
) -> Tuple[int, int]:
    """Create a term and its taxonomy row

    Returns (term_id, term_taxonomy_id).
    """
    if term_id is None:
        cursor = ctx.conn.execute(
            f"INSERT INTO {ctx.table('terms')} (name, slug, term_group) VALUES (?, ?, 0)",
            (name, slug),
        )
        term_id = cursor.lastrowid
    else:
        ctx.conn.execute(
            f"INSERT INTO {ctx.table('terms')} (term_id, name, slug, term_group) "
            "VALUES (?, ?, ?, 0)",
            (term_id, name, slug),
        )
    cursor = ctx.conn.execute(
        f"INSERT INTO {ctx.table('term_taxonomy')} "
        "(term_id, taxonomy, description, parent, count) VALUES (?, ?, ?, ?, ?)",
        (term_id, taxonomy, description, parent, count),
    )
    ctx.conn.commit()
    ctx.cache_delete("all_ids", taxonomy)
    return term_id, cursor.lastrowid


def add_object_term(ctx: SiteContext, object_id: int, term_taxonomy_id: int) -> None:
    """Relate a post to a term_taxonomy row and bump its count"""
    ctx.conn.execute(
        f"INSERT OR IGNORE INTO {ctx.table('term_relationships')} "
        "(object_id, term_taxonomy_id, term_order) VALUES (?, ?, 0)",
        (object_id, term_taxonomy_id),
    )
    ctx.conn.execute(
        f"UPDATE {ctx.table('term_taxonomy')} SET count = count + 1 "
        "WHERE term_taxonomy_id = ?",
        (term_taxonomy_id,),
    )
    ctx.conn.commit()


def _network_id(ctx: SiteContext) -> int:
    row = ctx.conn.execute(
        f"SELECT site_id FROM {ctx.db.global_table('blogs')} WHERE blog_id = ?",
        (ctx.blog_id,),
    ).fetchone()
    return row["site_id"] if row else DEFAULT_NETWORK_ID


def global_terms_enabled(ctx: SiteContext) -> bool:
    value = ctx.db.get_network_option("global_terms_enabled", _network_id(ctx))
    return value not in (None, "", "0")


def insert_default_terms(ctx: SiteContext) -> int:
    """Insert the default "Uncategorized" category. Returns its term_id.

    With global terms enabled the id is shared network-wide through the
    sitecategories table and stored as the site's default_category option;
    otherwise the category always gets id 1.
    """
    if global_terms_enabled(ctx):
        table = ctx.db.global_table("sitecategories")
        row = ctx.conn.execute(
            f"SELECT cat_ID FROM {table} WHERE category_nicename = ?",
            (DEFAULT_CATEGORY_SLUG,),
        ).fetchone()
        if row is None:
            cursor = ctx.conn.execute(
                f"INSERT INTO {table} (cat_name, category_nicename, last_updated) "
                "VALUES (?, ?, ?)",
                (
                    DEFAULT_CATEGORY_NAME,
                    DEFAULT_CATEGORY_SLUG,
                    datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                ),
            )
            cat_id = cursor.lastrowid
        else:
            cat_id = row["cat_ID"]
        options.update_option(ctx, "default_category", cat_id)
    else:
        cat_id = 1

    insert_term(
        ctx,
        DEFAULT_CATEGORY_NAME,
        DEFAULT_CATEGORY_SLUG,
        "category",
        term_id=cat_id,
        count=1,
    )
    return cat_id
