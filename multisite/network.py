"""
Network and blog operations

Handles network lookup, blog lookup by id or slug, blog provisioning,
blog deletion and blog listing
"""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Iterator

from config import DEFAULT_NETWORK_ID, MAIN_SITE_ID
from logging_config import logger
from .cache import ObjectCache
from .database import MultisiteDatabase
from .errors import BlogCreationError, MultisiteError, SiteNotFoundError
from . import options, terms, users


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def get_network(db: MultisiteDatabase, network_id: int) -> Optional[Dict[str, Any]]:
    """Network row (id, domain, path) or None"""
    try:
        network_id = int(network_id)
    except (TypeError, ValueError):
        return None
    row = db.conn.execute(
        f"SELECT * FROM {db.global_table('site')} WHERE id = ?", (network_id,)
    ).fetchone()
    return dict(row) if row else None


def current_network(db: MultisiteDatabase) -> Optional[Dict[str, Any]]:
    return get_network(db, DEFAULT_NETWORK_ID)


def site_url(domain: str, path: str) -> str:
    return f"http://{domain}{path}".rstrip("/")


def install_network(
    db: MultisiteDatabase,
    domain: str,
    path: str = "/",
    subdomain_install: bool = False,
    site_name: str = "",
    admin_login: Optional[str] = None,
    admin_email: str = "",
    admin_password: Optional[str] = None,
) -> int:
    """Turn an empty database into a network with its main site

    Creates the network row, network options, the main blog (id 1) with its
    tables, and optionally a super admin. Returns the network id.
    """
    cursor = db.conn.execute(
        f"INSERT INTO {db.global_table('site')} (domain, path) VALUES (?, ?)",
        (domain, path),
    )
    db.conn.commit()
    network_id = cursor.lastrowid

    db.update_network_option("multisite", "1", network_id)
    db.update_network_option("subdomain_install", "1" if subdomain_install else "0", network_id)
    db.update_network_option("site_name", site_name or domain, network_id)
    db.update_network_option("global_terms_enabled", "0", network_id)

    super_admins = []
    admin_id = 0
    if admin_login:
        admin_id = users.create_user(
            db, admin_login, admin_password or users.generate_password(), admin_email
        )
        super_admins.append(admin_login)
    db.update_network_option("site_admins", json.dumps(super_admins), network_id)

    create_blog(db, domain, path, site_name or domain, admin_id, network_id=network_id)
    logger.log_operation_end(
        "install_network", True, network_id=network_id, domain=domain, path=path
    )
    return network_id


def _with_siteurl(db: MultisiteDatabase, row: sqlite3.Row, cache: Optional[ObjectCache]) -> Dict[str, Any]:
    blog = dict(row)
    ctx = db.context(blog["blog_id"], cache)
    siteurl = None
    if db.site_tables_exist(blog["blog_id"]):
        siteurl = options.get_option(ctx, "siteurl")
    blog["siteurl"] = siteurl or site_url(blog["domain"], blog["path"])
    blog["url"] = blog["domain"] + blog["path"]
    return blog


def get_blog_details(
    db: MultisiteDatabase, blog_id, cache: Optional[ObjectCache] = None
) -> Optional[Dict[str, Any]]:
    """Blog row by id, with siteurl and url added"""
    try:
        blog_id = int(blog_id)
    except (TypeError, ValueError):
        return None
    if cache is not None:
        cached = cache.get(blog_id, "blog-details")
        if cached is not None:
            return cached
    row = db.conn.execute(
        f"SELECT * FROM {db.global_table('blogs')} WHERE blog_id = ?", (blog_id,)
    ).fetchone()
    if row is None:
        return None
    blog = _with_siteurl(db, row, cache)
    if cache is not None:
        cache.set(blog_id, blog, "blog-details")
    return blog


def get_blog_by_slug(
    db: MultisiteDatabase,
    slug: str,
    network_id: int = DEFAULT_NETWORK_ID,
    cache: Optional[ObjectCache] = None,
) -> Optional[Dict[str, Any]]:
    """Blog addressed by its slug

    Subdomain installs match slug.network-domain; subdirectory installs match
    the network domain with path /slug/.
    """
    slug = slug.strip("/")
    network = get_network(db, network_id)
    if network is None or not slug:
        return None
    if db.is_subdomain_install(network_id):
        domain = f"{slug}.{network['domain'].removeprefix('www.')}"
        path = network["path"]
    else:
        domain = network["domain"]
        path = f"{network['path'].rstrip('/')}/{slug}/"
    row = db.conn.execute(
        f"SELECT blog_id FROM {db.global_table('blogs')} WHERE domain = ? AND path = ?",
        (domain, path),
    ).fetchone()
    if row is None:
        return None
    return get_blog_details(db, row["blog_id"], cache)


def blog_exists(db: MultisiteDatabase, domain: str, path: str) -> bool:
    row = db.conn.execute(
        f"SELECT blog_id FROM {db.global_table('blogs')} WHERE domain = ? AND path = ?",
        (domain, path),
    ).fetchone()
    return row is not None


def create_blog(
    db: MultisiteDatabase,
    domain: str,
    path: str,
    title: str,
    user_id: int,
    meta: Optional[Dict[str, Any]] = None,
    network_id: int = DEFAULT_NETWORK_ID,
) -> int:
    """Register a blog, install its tables and base options. Returns its id."""
    meta = meta or {}
    public = 1 if meta.get("public", True) else 0
    now = _now()
    try:
        cursor = db.conn.execute(
            f"INSERT INTO {db.global_table('blogs')} "
            "(site_id, domain, path, registered, last_updated, public) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (network_id, domain, path, now, now, public),
        )
        db.conn.commit()
    except sqlite3.IntegrityError as e:
        db.conn.rollback()
        raise BlogCreationError("Sorry, that site already exists!") from e

    blog_id = cursor.lastrowid
    db.install_site_tables(blog_id)

    ctx = db.context(blog_id)
    admin = users.get_user_by(db, "id", user_id) if user_id else None
    url = site_url(domain, path)
    options.update_option(ctx, "siteurl", url)
    options.update_option(ctx, "home", url)
    options.update_option(ctx, "blogname", title)
    options.update_option(ctx, "admin_email", admin["user_email"] if admin else "")
    options.update_option(ctx, "blog_public", public)
    terms.insert_default_terms(ctx)

    if admin:
        users.update_user_option(
            db, user_id, "capabilities", json.dumps({"administrator": True}), blog_id=blog_id
        )

    logger.log_operation_end("create_blog", True, blog_id=blog_id, domain=domain, path=path)
    return blog_id


def delete_blog(
    db: MultisiteDatabase,
    blog_id: int,
    drop: bool = True,
    cache: Optional[ObjectCache] = None,
) -> bool:
    """Remove a blog from the network, dropping its tables unless drop is False"""
    blog_id = int(blog_id)
    if blog_id == MAIN_SITE_ID:
        raise MultisiteError("The main site cannot be deleted.")

    cursor = db.conn.execute(
        f"DELETE FROM {db.global_table('blogs')} WHERE blog_id = ?", (blog_id,)
    )
    db.conn.commit()
    if cursor.rowcount == 0:
        raise SiteNotFoundError()

    if cache is not None:
        cache.delete(blog_id, "blog-details")

    dropped = db.drop_site_tables(blog_id) if drop else []
    logger.log_operation_end(
        "delete_blog", True, blog_id=blog_id, dropped_tables=len(dropped)
    )
    return True


def list_blogs(db: MultisiteDatabase, network_id: Optional[int] = None) -> Iterator[Dict[str, Any]]:
    """Every blog row, optionally limited to one network, with url added"""
    sql = f"SELECT * FROM {db.global_table('blogs')}"
    params = []
    if network_id is not None:
        sql += " WHERE site_id = ?"
        params.append(network_id)
    sql += " ORDER BY blog_id"
    for row in db.conn.execute(sql, params).fetchall():
        blog = dict(row)
        blog["url"] = blog["domain"] + blog["path"]
        yield blog
