"""
Media re-hosting

Downloads the resource behind an attachment, stores it in the destination
site's uploads directory and registers it as a new attachment post there.
"""

import mimetypes
import sqlite3
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse, unquote

import requests

from config import UPLOADS_DIR, UPLOADS_BASE_URL, REQUEST_TIMEOUT, MAX_FILENAME_LENGTH
from logging_config import logger
from .database import SiteContext
from .errors import SideloadError, PostInsertError
from . import posts


def _unique_path(directory: Path, filename: str) -> Path:
    candidate = directory / filename
    stem, suffix = candidate.stem, candidate.suffix
    n = 1
    while candidate.exists():
        candidate = directory / f"{stem}-{n}{suffix}"
        n += 1
    return candidate


def _filename_from_url(url: str) -> str:
    """Last path segment of url, safe to use as a file name

    NUL bytes are dropped and long names are cut down to MAX_FILENAME_LENGTH,
    keeping the extension.
    """
    name = PurePosixPath(unquote(urlparse(url).path).replace("\x00", "")).name
    if not name or name in (".", ".."):
        return "file"
    if len(name.encode()) > MAX_FILENAME_LENGTH:
        path = PurePosixPath(name)
        suffix = path.suffix if len(path.suffix) <= 16 else ""
        stem = name[: len(name) - len(suffix)]
        while len((stem + suffix).encode()) > MAX_FILENAME_LENGTH:
            stem = stem[:-1]
        name = stem + suffix
    return name


def sideload(
    ctx: SiteContext,
    url: str,
    parent_post_id: int,
    uploads_dir: Optional[Path] = None,
    uploads_url: Optional[str] = None,
    timeout: float = REQUEST_TIMEOUT,
) -> str:
    """Re-host the resource at url on the site behind ctx

    Parameters:
        :ctx: destination site
        :url: locator of the existing resource
        :parent_post_id: post on the destination site that owns the new attachment
        :uploads_dir: filesystem root for uploads (config.UPLOADS_DIR)
        :uploads_url: public URL root matching uploads_dir (config.UPLOADS_BASE_URL)
        :timeout: seconds before the download is abandoned

    Returns the new locator. Raises SideloadError when the download, the
    file write or the attachment post fails.
    """
    uploads_dir = Path(uploads_dir or UPLOADS_DIR)
    uploads_url = (uploads_url or UPLOADS_BASE_URL).rstrip("/")

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise SideloadError(url, str(e)) from e

    now = datetime.now(timezone.utc)
    relative_dir = PurePosixPath("sites", str(ctx.blog_id), now.strftime("%Y"), now.strftime("%m"))
    target_dir = uploads_dir / relative_dir
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        target = _unique_path(target_dir, _filename_from_url(url))
        target.write_bytes(response.content)
    except (OSError, ValueError) as e:
        raise SideloadError(url, str(e)) from e

    relative_file = relative_dir / target.name
    new_url = f"{uploads_url}/{relative_file}"

    mime_type = response.headers.get("Content-Type") or mimetypes.guess_type(target.name)[0] or ""
    try:
        attachment_id = posts.insert_post(
            ctx,
            {
                "post_type": "attachment",
                "post_status": "inherit",
                "post_parent": parent_post_id,
                "post_title": target.stem,
                "post_name": target.stem.lower(),
                "post_mime_type": mime_type.split(";")[0].strip(),
                "guid": new_url,
            },
        )
    except PostInsertError as e:
        target.unlink(missing_ok=True)
        raise SideloadError(url, str(e)) from e

    try:
        posts.update_post_meta(ctx, attachment_id, "_wp_attached_file", str(relative_file))
    except sqlite3.Error as e:
        raise SideloadError(url, f"attachment {attachment_id} has no file meta: {e}") from e

    logger.logger.debug(
        f"Sideloaded {url} -> {new_url}",
        extra={"structured": {"sideload": {"from": url, "to": new_url, "site": ctx.blog_id}}},
    )
    return new_url
