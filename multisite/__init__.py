"""
Multisite data-access library

A Python library over the multisite schema: one set of network tables plus
one set of content tables per site, always addressed through an explicit
SiteContext.

Usage:
    import multisite

    db = multisite.MultisiteDatabase("multisite.db")
    source = db.context(1)
    total = multisite.count_posts(source)

    # Or import specific modules
    from multisite.posts import get_posts_after, insert_post
    from multisite.sites import create_site, empty_site

Modules:
    database: SQLite connection, table naming and SiteContext
    cache: Object cache with per-site and global groups
    posts: Post, attachment and post meta operations
    comments: Comment and comment meta operations
    terms: Terms, taxonomies and the default category
    options: Per-site options
    users: Network users, super admins and user options
    network: Networks and blogs
    media: Re-hosting attachment resources
    sites: Empty, delete, create and list sites
    errors: Exceptions
"""

from .database import MultisiteDatabase, SiteContext
from .cache import ObjectCache

from .posts import (
    count_posts,
    get_posts_after,
    iter_post_batches,
    get_post,
    get_post_meta,
    get_attachments,
    insert_post,
    update_post_content,
    update_post_meta,
    POST_FIELDS,
)

from .comments import (
    get_comments,
    get_comment_meta,
    insert_comment,
    update_comment_meta,
    COMMENT_FIELDS,
)

from .network import (
    get_network,
    get_blog_details,
    get_blog_by_slug,
    install_network,
    create_blog,
    delete_blog,
    list_blogs,
)

from .media import sideload

from .sites import (
    empty_site,
    find_site,
    delete_site,
    create_site,
    list_sites,
    parse_fields,
)

from .errors import (
    MultisiteError,
    NotMultisiteError,
    SiteNotFoundError,
    NetworkNotFoundError,
    ReservedNameError,
    UserCreationError,
    BlogCreationError,
    PostInsertError,
    CommentInsertError,
    SideloadError,
)

__version__ = "1.0.0"

__all__ = [
    # Storage
    "MultisiteDatabase",
    "SiteContext",
    "ObjectCache",
    # Posts
    "count_posts",
    "get_posts_after",
    "iter_post_batches",
    "get_post",
    "get_post_meta",
    "get_attachments",
    "insert_post",
    "update_post_content",
    "update_post_meta",
    "POST_FIELDS",
    # Comments
    "get_comments",
    "get_comment_meta",
    "insert_comment",
    "update_comment_meta",
    "COMMENT_FIELDS",
    # Network
    "get_network",
    "get_blog_details",
    "get_blog_by_slug",
    "install_network",
    "create_blog",
    "delete_blog",
    "list_blogs",
    # Media
    "sideload",
    # Site operations
    "empty_site",
    "find_site",
    "delete_site",
    "create_site",
    "list_sites",
    "parse_fields",
    # Errors
    "MultisiteError",
    "NotMultisiteError",
    "SiteNotFoundError",
    "NetworkNotFoundError",
    "ReservedNameError",
    "UserCreationError",
    "BlogCreationError",
    "PostInsertError",
    "CommentInsertError",
    "SideloadError",
]
