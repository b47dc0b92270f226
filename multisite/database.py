"""
Database module for the multisite schema.

Uses SQLite to hold the network tables (networks, blogs, users) and one set of
content tables per site. Site 1 uses the bare table prefix (wp_posts); every
other site N uses wp_N_posts.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Optional, List

from config import DB_PATH, TABLE_PREFIX, MAIN_SITE_ID
from .cache import ObjectCache


GLOBAL_TABLES = {
    "site": """
        CREATE TABLE IF NOT EXISTS {table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            domain TEXT NOT NULL DEFAULT '',
            path TEXT NOT NULL DEFAULT ''
        )
    """,
    "sitemeta": """
        CREATE TABLE IF NOT EXISTS {table} (
            meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
            site_id INTEGER NOT NULL DEFAULT 0,
            meta_key TEXT,
            meta_value TEXT
        )
    """,
    "blogs": """
        CREATE TABLE IF NOT EXISTS {table} (
            blog_id INTEGER PRIMARY KEY AUTOINCREMENT,
            site_id INTEGER NOT NULL DEFAULT 0,
            domain TEXT NOT NULL DEFAULT '',
            path TEXT NOT NULL DEFAULT '',
            registered TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            last_updated TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            public INTEGER NOT NULL DEFAULT 1,
            archived INTEGER NOT NULL DEFAULT 0,
            spam INTEGER NOT NULL DEFAULT 0,
            deleted INTEGER NOT NULL DEFAULT 0,
            UNIQUE (domain, path)
        )
    """,
    "users": """
        CREATE TABLE IF NOT EXISTS {table} (
            ID INTEGER PRIMARY KEY AUTOINCREMENT,
            user_login TEXT NOT NULL UNIQUE,
            user_pass TEXT NOT NULL DEFAULT '',
            user_email TEXT NOT NULL DEFAULT '',
            user_registered TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            display_name TEXT NOT NULL DEFAULT ''
        )
    """,
    "usermeta": """
        CREATE TABLE IF NOT EXISTS {table} (
            umeta_id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL DEFAULT 0,
            meta_key TEXT,
            meta_value TEXT
        )
    """,
    "sitecategories": """
        CREATE TABLE IF NOT EXISTS {table} (
            cat_ID INTEGER PRIMARY KEY AUTOINCREMENT,
            cat_name TEXT NOT NULL DEFAULT '',
            category_nicename TEXT NOT NULL DEFAULT '',
            last_updated TEXT NOT NULL DEFAULT '0000-00-00 00:00:00'
        )
    """,
}

SITE_TABLES = {
    "posts": """
        CREATE TABLE IF NOT EXISTS {table} (
            ID INTEGER PRIMARY KEY AUTOINCREMENT,
            post_author INTEGER NOT NULL DEFAULT 0,
            post_date TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            post_date_gmt TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            post_content TEXT NOT NULL DEFAULT '',
            post_title TEXT NOT NULL DEFAULT '',
            post_excerpt TEXT NOT NULL DEFAULT '',
            post_status TEXT NOT NULL DEFAULT 'publish',
            comment_status TEXT NOT NULL DEFAULT 'open',
            ping_status TEXT NOT NULL DEFAULT 'open',
            post_password TEXT NOT NULL DEFAULT '',
            post_name TEXT NOT NULL DEFAULT '',
            to_ping TEXT NOT NULL DEFAULT '',
            pinged TEXT NOT NULL DEFAULT '',
            post_modified TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            post_modified_gmt TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            post_parent INTEGER NOT NULL DEFAULT 0,
            guid TEXT NOT NULL DEFAULT '',
            menu_order INTEGER NOT NULL DEFAULT 0,
            post_type TEXT NOT NULL DEFAULT 'post',
            post_mime_type TEXT NOT NULL DEFAULT '',
            comment_count INTEGER NOT NULL DEFAULT 0
        )
    """,
    "postmeta": """
        CREATE TABLE IF NOT EXISTS {table} (
            meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
            post_id INTEGER NOT NULL DEFAULT 0,
            meta_key TEXT,
            meta_value TEXT
        )
    """,
    "comments": """
        CREATE TABLE IF NOT EXISTS {table} (
            comment_ID INTEGER PRIMARY KEY AUTOINCREMENT,
            comment_post_ID INTEGER NOT NULL DEFAULT 0,
            comment_author TEXT NOT NULL DEFAULT '',
            comment_author_email TEXT NOT NULL DEFAULT '',
            comment_author_url TEXT NOT NULL DEFAULT '',
            comment_author_IP TEXT NOT NULL DEFAULT '',
            comment_date TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            comment_date_gmt TEXT NOT NULL DEFAULT '0000-00-00 00:00:00',
            comment_content TEXT NOT NULL DEFAULT '',
            comment_karma INTEGER NOT NULL DEFAULT 0,
            comment_approved TEXT NOT NULL DEFAULT '1',
            comment_agent TEXT NOT NULL DEFAULT '',
            comment_type TEXT NOT NULL DEFAULT '',
            comment_parent INTEGER NOT NULL DEFAULT 0,
            user_id INTEGER NOT NULL DEFAULT 0
        )
    """,
    "commentmeta": """
        CREATE TABLE IF NOT EXISTS {table} (
            meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
            comment_id INTEGER NOT NULL DEFAULT 0,
            meta_key TEXT,
            meta_value TEXT
        )
    """,
    "terms": """
        CREATE TABLE IF NOT EXISTS {table} (
            term_id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL DEFAULT '',
            slug TEXT NOT NULL DEFAULT '',
            term_group INTEGER NOT NULL DEFAULT 0
        )
    """,
    "term_taxonomy": """
        CREATE TABLE IF NOT EXISTS {table} (
            term_taxonomy_id INTEGER PRIMARY KEY AUTOINCREMENT,
            term_id INTEGER NOT NULL DEFAULT 0,
            taxonomy TEXT NOT NULL DEFAULT '',
            description TEXT NOT NULL DEFAULT '',
            parent INTEGER NOT NULL DEFAULT 0,
            count INTEGER NOT NULL DEFAULT 0
        )
    """,
    "term_relationships": """
        CREATE TABLE IF NOT EXISTS {table} (
            object_id INTEGER NOT NULL DEFAULT 0,
            term_taxonomy_id INTEGER NOT NULL DEFAULT 0,
            term_order INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (object_id, term_taxonomy_id)
        )
    """,
    "options": """
        CREATE TABLE IF NOT EXISTS {table} (
            option_id INTEGER PRIMARY KEY AUTOINCREMENT,
            option_name TEXT NOT NULL UNIQUE,
            option_value TEXT NOT NULL DEFAULT '',
            autoload TEXT NOT NULL DEFAULT 'yes'
        )
    """,
}


class MultisiteDatabase:
    """
    SQLite connection over a multisite schema.
    Creates the network-wide tables on open; per-site tables are installed
    when a site is created.
    """

    def __init__(self, db_path: str = None, prefix: str = TABLE_PREFIX):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file.
                     Defaults to config.DB_PATH
            prefix: Table prefix shared by every table of the install
        """
        if db_path is None:
            DB_PATH.parent.mkdir(parents=True, exist_ok=True)
            db_path = str(DB_PATH)

        self.db_path = db_path
        self.prefix = prefix
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row  # Access columns by name
        self._create_global_tables()

    def _create_global_tables(self):
        cursor = self.conn.cursor()
        for name, ddl in GLOBAL_TABLES.items():
            cursor.execute(ddl.format(table=self.global_table(name)))
        self.conn.commit()

    def global_table(self, name: str) -> str:
        """Name of a network-wide table (wp_blogs, wp_users, ...)"""
        return f"{self.prefix}{name}"

    def site_prefix(self, blog_id: int) -> str:
        blog_id = int(blog_id)
        if blog_id == MAIN_SITE_ID:
            return self.prefix
        return f"{self.prefix}{blog_id}_"

    def site_table(self, blog_id: int, name: str) -> str:
        """Name of a per-site table (wp_posts, wp_2_posts, ...)"""
        if name not in SITE_TABLES:
            raise KeyError(f"Unknown site table: {name}")
        return f"{self.site_prefix(blog_id)}{name}"

    def install_site_tables(self, blog_id: int):
        """Create the content tables for a site."""
        cursor = self.conn.cursor()
        for name, ddl in SITE_TABLES.items():
            cursor.execute(ddl.format(table=self.site_table(blog_id, name)))
        self.conn.commit()

    def drop_site_tables(self, blog_id: int) -> List[str]:
        """Drop the content tables for a site. Returns the dropped table names."""
        dropped = []
        cursor = self.conn.cursor()
        for name in SITE_TABLES:
            table = self.site_table(blog_id, name)
            cursor.execute(f"DROP TABLE IF EXISTS {table}")
            dropped.append(table)
        self.conn.commit()
        return dropped

    def site_tables_exist(self, blog_id: int) -> bool:
        row = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.site_table(blog_id, "posts"),),
        ).fetchone()
        return row is not None

    def truncate(self, table: str):
        """Empty a table and reset its auto-increment counter."""
        self.conn.execute(f"DELETE FROM {table}")
        self.conn.execute("DELETE FROM sqlite_sequence WHERE name = ?", (table,))
        self.conn.commit()

    def get_network_option(self, key: str, network_id: int = 1, default=None):
        row = self.conn.execute(
            f"SELECT meta_value FROM {self.global_table('sitemeta')} "
            "WHERE site_id = ? AND meta_key = ?",
            (network_id, key),
        ).fetchone()
        return row["meta_value"] if row else default

    def update_network_option(self, key: str, value, network_id: int = 1):
        table = self.global_table("sitemeta")
        cursor = self.conn.cursor()
        cursor.execute(
            f"UPDATE {table} SET meta_value = ? WHERE site_id = ? AND meta_key = ?",
            (value, network_id, key),
        )
        if cursor.rowcount == 0:
            cursor.execute(
                f"INSERT INTO {table} (site_id, meta_key, meta_value) VALUES (?, ?, ?)",
                (network_id, key, value),
            )
        self.conn.commit()

    def is_multisite(self) -> bool:
        """An install is a multisite once a network row exists."""
        row = self.conn.execute(
            f"SELECT COUNT(*) FROM {self.global_table('site')}"
        ).fetchone()
        return row[0] > 0

    def is_subdomain_install(self, network_id: int = 1) -> bool:
        return self.get_network_option("subdomain_install", network_id) in ("1", 1)

    def context(self, blog_id: int, cache: Optional[ObjectCache] = None) -> "SiteContext":
        return SiteContext(self, int(blog_id), cache or ObjectCache())

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


@dataclass
class SiteContext:
    """
    Explicit handle on one site's storage.

    Every read and write in the data-access layer takes a context, so code
    that touches two sites holds two contexts side by side instead of
    switching a global "current site".
    """

    db: MultisiteDatabase
    blog_id: int
    cache: ObjectCache = field(default_factory=ObjectCache)

    @property
    def conn(self) -> sqlite3.Connection:
        return self.db.conn

    @property
    def prefix(self) -> str:
        return self.db.site_prefix(self.blog_id)

    def table(self, name: str) -> str:
        return self.db.site_table(self.blog_id, name)

    def cache_get(self, key, group: str):
        return self.cache.get(key, group, blog_id=self.blog_id)

    def cache_set(self, key, value, group: str):
        self.cache.set(key, value, group, blog_id=self.blog_id)

    def cache_delete(self, key, group: str) -> bool:
        return self.cache.delete(key, group, blog_id=self.blog_id)

    def sibling(self, blog_id: int) -> "SiteContext":
        """Context for another site on the same database and cache."""
        return SiteContext(self.db, int(blog_id), self.cache)
