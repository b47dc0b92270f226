"""
Site-level operations behind the `site` commands

Handles emptying a site, deleting a site, creating a site and listing sites.
Precondition failures raise before anything is written.
"""

import re
from typing import Optional, Dict, Any, List, Iterator

from config import (
    EMPTY_ITERATOR_CHUNK,
    REGISTERED_TAXONOMIES,
    RESERVED_SUBDIRECTORY_NAMES,
    DEFAULT_LIST_FIELDS,
)
from logging_config import logger
from .database import MultisiteDatabase, SiteContext
from .errors import (
    NotMultisiteError,
    SiteNotFoundError,
    NetworkNotFoundError,
    ReservedNameError,
    MultisiteError,
    BlogCreationError,
)
from . import comments, network, options, posts, terms, users

SLUG_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")
FIELDS_SPLIT = re.compile(r",[ \t]*")


def require_multisite(db: MultisiteDatabase):
    if not db.is_multisite():
        raise NotMultisiteError()


# Emptying a site


def empty_posts(ctx: SiteContext, chunk_size: int = EMPTY_ITERATOR_CHUNK) -> int:
    """Invalidate every post's cache entries, then truncate posts and postmeta"""
    count = 0
    for post_id in posts.iter_post_ids(ctx, chunk_size):
        ctx.cache_delete(post_id, "posts")
        ctx.cache_delete(post_id, "post_meta")
        for taxonomy in REGISTERED_TAXONOMIES:
            ctx.cache_delete(post_id, f"{taxonomy}_relationships")
        ctx.cache.delete(f"{ctx.blog_id}-{post_id}", "global-posts")
        count += 1
    ctx.db.truncate(ctx.table("posts"))
    ctx.db.truncate(ctx.table("postmeta"))
    return count


def empty_comments(ctx: SiteContext) -> int:
    comment_ids = list(comments.iter_comment_ids(ctx))
    for comment_id in comment_ids:
        ctx.cache_delete(comment_id, "comment")
        ctx.cache_delete(comment_id, "comment_meta")
    ctx.db.truncate(ctx.table("comments"))
    ctx.db.truncate(ctx.table("commentmeta"))
    return len(comment_ids)


def empty_taxonomies(ctx: SiteContext) -> int:
    rows = terms.get_term_taxonomies(ctx)
    cleaned = []
    for row in rows:
        ctx.cache_delete(row["term_id"], row["taxonomy"])
        if row["taxonomy"] not in cleaned:
            cleaned.append(row["taxonomy"])

    for taxonomy in cleaned:
        ctx.cache_delete("all_ids", taxonomy)
        ctx.cache_delete("get", taxonomy)
        options.delete_option(ctx, f"{taxonomy}_children")

    for table in ("terms", "term_taxonomy", "term_relationships"):
        ctx.db.truncate(ctx.table(table))
    return len(rows)


def empty_site(ctx: SiteContext) -> Dict[str, int]:
    """Remove all posts, comments and terms of a site and restore the default category"""
    if not ctx.db.site_tables_exist(ctx.blog_id):
        raise SiteNotFoundError()

    logger.log_operation_start("empty_site", blog_id=ctx.blog_id)
    result = {
        "posts": empty_posts(ctx),
        "comments": empty_comments(ctx),
        "terms": empty_taxonomies(ctx),
    }
    result["default_category"] = terms.insert_default_terms(ctx)
    logger.log_operation_end("empty_site", True, blog_id=ctx.blog_id, **result)
    return result


def site_url(ctx: SiteContext) -> str:
    url = options.get_option(ctx, "siteurl")
    if url:
        return url
    blog = network.get_blog_details(ctx.db, ctx.blog_id)
    return blog["siteurl"] if blog else ""


# Deleting a site


def find_site(db: MultisiteDatabase, site_id=None, slug: Optional[str] = None, cache=None) -> Dict[str, Any]:
    """Resolve a site by slug, or by id when no slug is given"""
    require_multisite(db)
    if slug is not None:
        blog = network.get_blog_by_slug(db, slug, cache=cache)
    else:
        if site_id is None:
            raise MultisiteError("Need to specify a blog id.")
        blog = network.get_blog_details(db, site_id, cache)
    if not blog:
        raise SiteNotFoundError()
    return blog


def delete_site(db: MultisiteDatabase, blog: Dict[str, Any], keep_tables: bool = False, cache=None) -> bool:
    return network.delete_blog(db, blog["blog_id"], drop=not keep_tables, cache=cache)


# Creating a site


def _resolve_email(db: MultisiteDatabase, email: str, network_id: int) -> str:
    email = users.sanitize_email(email)
    if email and users.is_email(email):
        return email
    for login in users.get_super_admins(db, network_id)[:1]:
        super_user = users.get_user_by(db, "login", login)
        if super_user:
            return super_user["user_email"]
    return ""


def create_site(
    db: MultisiteDatabase,
    slug: str,
    title: Optional[str] = None,
    email: str = "",
    network_id: Optional[int] = None,
    private: bool = False,
) -> Dict[str, Any]:
    """Provision a new site on a network

    Returns a dict with blog_id, url, user_id and whether the user was created.
    """
    require_multisite(db)

    base = slug
    title = title if title is not None else base[:1].upper() + base[1:]

    if network_id:
        net = network.get_network(db, network_id)
        if net is None:
            raise NetworkNotFoundError(network_id)
    else:
        net = network.current_network(db)
        if net is None:
            raise NotMultisiteError()

    if SLUG_PATTERN.match(base):
        base = base.lower()

    subdomain = db.is_subdomain_install(net["id"])
    if not subdomain and base in RESERVED_SUBDIRECTORY_NAMES:
        raise ReservedNameError(RESERVED_SUBDIRECTORY_NAMES)

    email = _resolve_email(db, email, net["id"])

    if subdomain:
        path = "/"
        domain = f"{base}.{net['domain'].removeprefix('www.')}"
        url = domain
    else:
        domain = net["domain"]
        path = "/" + base.strip("/") + "/"
        url = domain + path

    if network.blog_exists(db, domain, path):
        raise BlogCreationError("Sorry, that site already exists!")

    user_created = False
    user_id = users.email_exists(db, email)
    if not user_id:
        password = users.generate_password()
        user_id = users.create_user(db, base, password, email)
        users.notify_new_user(user_id, base, email)
        user_created = True

    blog_id = network.create_blog(
        db, domain, path, title, user_id, {"public": not private}, net["id"]
    )

    if not users.is_super_admin(db, user_id, net["id"]) and not users.get_user_option(
        db, user_id, "primary_blog"
    ):
        users.update_user_option(db, user_id, "primary_blog", blog_id, is_global=True)

    return {
        "blog_id": blog_id,
        "url": url,
        "user_id": user_id,
        "user_created": user_created,
    }


# Listing sites


def parse_fields(fields) -> List[str]:
    if fields is None:
        return list(DEFAULT_LIST_FIELDS)
    if isinstance(fields, str):
        return [f for f in FIELDS_SPLIT.split(fields.strip()) if f]
    return list(fields)


def list_sites(db: MultisiteDatabase, network_id: Optional[int] = None) -> Iterator[Dict[str, Any]]:
    require_multisite(db)
    return network.list_blogs(db, network_id)
