"""
Builders shared by the multisite tests
"""

from pathlib import Path
from typing import Dict, Optional
from unittest.mock import MagicMock

from multisite import comments, network, posts
from multisite.database import MultisiteDatabase

NETWORK_DOMAIN = "example.com"
ADMIN_EMAIL = "admin@example.com"


def make_network(temp_dir: str, subdomain: bool = False, domain: str = NETWORK_DOMAIN) -> MultisiteDatabase:
    """Database with network 1, main site 1 and super admin 'admin' (user 1)"""
    db = MultisiteDatabase(str(Path(temp_dir) / "multisite.db"))
    network.install_network(
        db,
        domain,
        "/",
        subdomain_install=subdomain,
        site_name="Example",
        admin_login="admin",
        admin_email=ADMIN_EMAIL,
        admin_password="secret",
    )
    return db


def add_site(db: MultisiteDatabase, slug: str) -> int:
    return network.create_blog(db, NETWORK_DOMAIN, f"/{slug}/", slug.title(), 1)


def add_post(ctx, title: str, content: str = "", meta: Optional[Dict[str, str]] = None, **fields) -> int:
    data = {"post_title": title, "post_content": content, "post_name": title.lower()}
    data.update(fields)
    post_id = posts.insert_post(ctx, data)
    for key, value in (meta or {}).items():
        posts.update_post_meta(ctx, post_id, key, value)
    return post_id


def add_attachment(ctx, parent_id: int, url: str) -> int:
    return posts.insert_post(
        ctx,
        {
            "post_type": "attachment",
            "post_status": "inherit",
            "post_parent": parent_id,
            "post_title": url.rsplit("/", 1)[-1],
            "guid": url,
        },
    )


def add_comment(ctx, post_id: int, content: str, parent: int = 0, meta: Optional[Dict[str, str]] = None) -> int:
    comment_id = comments.insert_comment(
        ctx,
        post_id,
        {
            "comment_author": "Reader",
            "comment_author_email": "reader@example.com",
            "comment_content": content,
            "comment_parent": parent,
        },
    )
    for key, value in (meta or {}).items():
        comments.update_comment_meta(ctx, comment_id, key, value)
    return comment_id


def fake_response(content: bytes = b"binary", content_type: str = "image/png") -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.content = content
    response.headers = {"Content-Type": content_type}
    return response
