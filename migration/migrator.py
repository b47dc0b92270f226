"""
Content migrator: copies posts with their meta, attachments and comments
from one site to another.

Every read goes through the source context and every write through the
destination context, so no site switching happens between them. Posts are
paged with an ID cursor, which visits each post exactly once even when rows
are added or removed while the move is running.
"""

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from config import MOVE_CHUNK_SIZE
from logging_config import logger
from multisite import comments, media, posts
from multisite.database import SiteContext
from multisite.errors import (
    CommentInsertError,
    MultisiteError,
    PostInsertError,
    SideloadError,
    SiteNotFoundError,
)
from .report import ItemResult, MigrationReport

OPERATION = "move_posts"


@dataclass
class SourceBundle:
    """Everything read from the source site for one post."""
    post: sqlite3.Row
    meta: List[sqlite3.Row] = field(default_factory=list)
    attachments: List[sqlite3.Row] = field(default_factory=list)
    comments: List[Tuple[sqlite3.Row, List[sqlite3.Row]]] = field(default_factory=list)


class ContentMigrator:
    """
    Moves posts of type 'post' from a source site to a destination site.

    The source is never written to. A post that cannot be created is reported
    and skipped together with its meta, attachments and comments; the rest of
    the batch carries on.
    """

    def __init__(
        self,
        source: SiteContext,
        destination: SiteContext,
        term_id: int = 0,
        batch_size: int = MOVE_CHUNK_SIZE,
        uploads_dir: Optional[Path] = None,
        uploads_url: Optional[str] = None,
    ):
        self.source = source
        self.destination = destination
        self.term_id = int(term_id or 0)
        self.batch_size = batch_size
        self.uploads_dir = uploads_dir
        self.uploads_url = uploads_url

    def check(self):
        """Raise before anything is written if the move cannot start."""
        if self.source.blog_id == self.destination.blog_id:
            raise MultisiteError("Source and destination are the same site.")
        for ctx in (self.source, self.destination):
            if not ctx.db.site_tables_exist(ctx.blog_id):
                raise SiteNotFoundError(f"Site {ctx.blog_id} not found.")
        if self.batch_size < 1:
            raise MultisiteError("Batch size must be at least 1.")

    def count(self) -> int:
        return posts.count_posts(self.source, "post", self.term_id)

    def run(self) -> MigrationReport:
        self.check()

        report = MigrationReport(
            source_blog_id=self.source.blog_id,
            destination_blog_id=self.destination.blog_id,
            term_id=self.term_id,
            batch_size=self.batch_size,
        )
        report.total = self.count()
        logger.log_operation_start(
            OPERATION,
            source=self.source.blog_id,
            destination=self.destination.blog_id,
            term_id=self.term_id,
            total=report.total,
        )

        for batch in posts.iter_post_batches(
            self.source, self.batch_size, "post", self.term_id
        ):
            report.batches.append(len(batch))
            for post in batch:
                report.add(self.migrate_post(post))
            logger.log_batch_progress(
                OPERATION,
                len(report.items),
                report.total,
                batch=len(report.batches),
                failed=len(report.failed),
            )

        report.finish()
        logger.log_operation_end(
            OPERATION, not report.has_failures(), **report.get_stats()
        )
        return report

    def read_source(self, post: sqlite3.Row) -> SourceBundle:
        """Read meta, attachments, comments and comment meta from the source."""
        bundle = SourceBundle(post=post)
        bundle.meta = posts.get_post_meta(self.source, post["ID"])
        bundle.attachments = posts.get_attachments(self.source, post["ID"])
        for comment in comments.get_comments(self.source, post["ID"]):
            bundle.comments.append(
                (comment, comments.get_comment_meta(self.source, comment["comment_ID"]))
            )
        return bundle

    def migrate_post(self, post: sqlite3.Row) -> ItemResult:
        result = ItemResult(source_id=post["ID"], title=post["post_title"])
        bundle = self.read_source(post)

        try:
            new_id = posts.insert_post(
                self.destination, {f: post[f] for f in posts.POST_FIELDS}
            )
        except PostInsertError as e:
            result.fail(str(e))
            logger.log_item_failure(OPERATION, post["ID"], str(e))
            return result
        result.new_id = new_id

        self._copy_meta(bundle, result)
        self._move_attachments(bundle, result)
        self._move_comments(bundle, result)
        return result

    def _copy_meta(self, bundle: SourceBundle, result: ItemResult):
        for meta in bundle.meta:
            try:
                posts.update_post_meta(
                    self.destination, result.new_id, meta["meta_key"], meta["meta_value"]
                )
                result.meta_copied += 1
            except sqlite3.Error as e:
                result.warn(f"meta {meta['meta_key']}: {e}")

    def _move_attachments(self, bundle: SourceBundle, result: ItemResult):
        content = bundle.post["post_content"]
        for attachment in bundle.attachments:
            old_url = attachment["guid"]
            if not old_url:
                result.warn(f"attachment {attachment['ID']} has no locator")
                continue
            try:
                new_url = media.sideload(
                    self.destination,
                    old_url,
                    result.new_id,
                    uploads_dir=self.uploads_dir,
                    uploads_url=self.uploads_url,
                )
            except SideloadError as e:
                result.warn(str(e))
                logger.log_item_failure(
                    OPERATION, bundle.post["ID"], str(e), attachment=attachment["ID"]
                )
                continue

            result.attachments_migrated += 1
            content = content.replace(old_url, new_url)
            try:
                posts.update_post_content(self.destination, result.new_id, content)
            except sqlite3.Error as e:
                result.warn(f"body not rewritten for {old_url}: {e}")
                logger.log_item_failure(
                    OPERATION, bundle.post["ID"], str(e), attachment=attachment["ID"]
                )

    def _move_comments(self, bundle: SourceBundle, result: ItemResult):
        # Parents are remapped to comments already moved for this post.
        comment_ids = {}
        for comment, comment_meta in bundle.comments:
            data = {f: comment[f] for f in comments.COMMENT_FIELDS}
            data["comment_parent"] = comment_ids.get(comment["comment_parent"], 0)
            try:
                new_comment_id = comments.insert_comment(
                    self.destination, result.new_id, data
                )
            except CommentInsertError as e:
                result.comments_failed += 1
                result.warn(f"comment {comment['comment_ID']}: {e}")
                logger.log_item_failure(
                    OPERATION, bundle.post["ID"], str(e), comment=comment["comment_ID"]
                )
                continue

            comment_ids[comment["comment_ID"]] = new_comment_id
            result.comments_migrated += 1
            for meta in comment_meta:
                try:
                    comments.update_comment_meta(
                        self.destination, new_comment_id, meta["meta_key"], meta["meta_value"]
                    )
                except sqlite3.Error as e:
                    result.warn(f"comment {comment['comment_ID']} meta {meta['meta_key']}: {e}")
