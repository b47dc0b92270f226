"""
Orchestrator for moving content between sites.
Resolves both sites, runs the migrator and writes the report file.
"""

from pathlib import Path
from typing import Optional

from config import MAIN_SITE_ID, MOVE_CHUNK_SIZE
from multisite.cache import ObjectCache
from multisite.database import MultisiteDatabase
from multisite.sites import find_site
from .migrator import ContentMigrator
from .report import MigrationReport


def run_move(
    db: MultisiteDatabase,
    destination_blog_id: int,
    term_id: int = 0,
    source_blog_id: int = MAIN_SITE_ID,
    cache: Optional[ObjectCache] = None,
    batch_size: int = MOVE_CHUNK_SIZE,
    uploads_dir: Optional[Path] = None,
    uploads_url: Optional[str] = None,
    report_file: Optional[str] = None,
) -> MigrationReport:
    """
    Move every post (optionally only those in one term) to another site.

    Args:
        db: Multisite database holding both sites
        destination_blog_id: Site receiving the posts
        term_id: When non-zero, only posts related to this term are moved
        source_blog_id: Site the posts are read from
        cache: Object cache shared with the caller
        batch_size: Posts read per batch
        uploads_dir: Filesystem root for re-hosted attachments
        uploads_url: Public URL root matching uploads_dir
        report_file: Optional path for a JSONL report

    Returns:
        MigrationReport with one result per post
    """
    cache = cache or ObjectCache()
    source_blog = find_site(db, site_id=source_blog_id, cache=cache)
    destination_blog = find_site(db, site_id=destination_blog_id, cache=cache)

    migrator = ContentMigrator(
        db.context(source_blog["blog_id"], cache),
        db.context(destination_blog["blog_id"], cache),
        term_id=term_id,
        batch_size=batch_size,
        uploads_dir=uploads_dir,
        uploads_url=uploads_url,
    )
    report = migrator.run()

    if report_file:
        report.write_jsonl(report_file)

    return report
