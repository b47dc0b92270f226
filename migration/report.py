"""
Per-item results of a content move.

Status:
- FAILED: the post could not be created on the destination; nothing that
  depends on it was migrated
- PARTIAL: the post was created but an attachment, comment or meta row was not
- MIGRATED: the post and everything attached to it were copied
"""

from datetime import datetime, timezone
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional
import json
import os


class ItemStatus(Enum):
    FAILED = 1
    PARTIAL = 2
    MIGRATED = 3

    def __str__(self):
        return self.name


@dataclass
class ItemResult:
    """Outcome of moving a single post."""
    source_id: int
    title: str = ""
    new_id: Optional[int] = None
    status: ItemStatus = ItemStatus.MIGRATED
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    meta_copied: int = 0
    attachments_migrated: int = 0
    comments_migrated: int = 0
    comments_failed: int = 0

    def fail(self, reason: str):
        self.status = ItemStatus.FAILED
        self.reason = reason

    def warn(self, message: str):
        self.warnings.append(message)
        if self.status == ItemStatus.MIGRATED:
            self.status = ItemStatus.PARTIAL

    @property
    def created(self) -> bool:
        return self.status != ItemStatus.FAILED

    def to_dict(self) -> dict:
        return {
            'source_id': self.source_id,
            'title': self.title,
            'new_id': self.new_id,
            'status': str(self.status),
            'reason': self.reason,
            'warnings': list(self.warnings),
            'meta_copied': self.meta_copied,
            'attachments_migrated': self.attachments_migrated,
            'comments_migrated': self.comments_migrated,
            'comments_failed': self.comments_failed,
        }


@dataclass
class MigrationReport:
    """
    Everything a content move did, returned to the caller.

    Collects one ItemResult per source post plus the size of every batch read,
    and can be written out as JSONL for later review.
    """
    source_blog_id: int
    destination_blog_id: int
    term_id: int = 0
    batch_size: int = 0
    total: int = 0
    batches: List[int] = field(default_factory=list)
    items: List[ItemResult] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: Optional[str] = None

    def add(self, item: ItemResult):
        self.items.append(item)

    def finish(self):
        self.finished_at = datetime.now(timezone.utc).isoformat()

    def get_items_by_status(self, status: ItemStatus) -> List[ItemResult]:
        return [i for i in self.items if i.status == status]

    @property
    def created(self) -> List[ItemResult]:
        return [i for i in self.items if i.created]

    @property
    def failed(self) -> List[ItemResult]:
        return self.get_items_by_status(ItemStatus.FAILED)

    def has_failures(self) -> bool:
        return any(i.status == ItemStatus.FAILED for i in self.items)

    def id_map(self) -> dict:
        """Source post ID -> destination post ID for every created post."""
        return {i.source_id: i.new_id for i in self.items if i.created}

    def get_stats(self) -> dict:
        return {
            'total': self.total,
            'processed': len(self.items),
            'migrated': len(self.get_items_by_status(ItemStatus.MIGRATED)),
            'partial': len(self.get_items_by_status(ItemStatus.PARTIAL)),
            'failed': len(self.failed),
            'batches': len(self.batches),
            'attachments': sum(i.attachments_migrated for i in self.items),
            'comments': sum(i.comments_migrated for i in self.items),
        }

    def to_dict(self) -> dict:
        return {
            'source_blog_id': self.source_blog_id,
            'destination_blog_id': self.destination_blog_id,
            'term_id': self.term_id,
            'batch_size': self.batch_size,
            'batches': list(self.batches),
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'stats': self.get_stats(),
            'items': [i.to_dict() for i in self.items],
        }

    def write_jsonl(self, path: str):
        """Write a header line followed by one JSON object per item."""
        log_dir = os.path.dirname(path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        with open(path, 'w', encoding='utf-8') as f:
            header = {
                'type': 'move_report_header',
                'source_blog_id': self.source_blog_id,
                'destination_blog_id': self.destination_blog_id,
                'term_id': self.term_id,
                'started_at': self.started_at,
                'finished_at': self.finished_at,
                'stats': self.get_stats(),
            }
            f.write(json.dumps(header) + '\n')
            for item in self.items:
                f.write(json.dumps(item.to_dict()) + '\n')

    def generate_report(self) -> str:
        """Human-readable summary."""
        stats = self.get_stats()
        lines = [
            "=" * 80,
            "MOVE SUMMARY",
            "=" * 80,
            f"Source site: {self.source_blog_id}  ->  Destination site: {self.destination_blog_id}",
            f"Posts matched: {stats['total']}",
            f"Batches: {stats['batches']}",
            f"  Migrated: {stats['migrated']}",
            f"  Partial:  {stats['partial']}",
            f"  Failed:   {stats['failed']}",
            f"  Attachments re-hosted: {stats['attachments']}",
            f"  Comments moved: {stats['comments']}",
        ]

        if self.failed:
            lines.extend(["", "-" * 80, f"FAILED POSTS ({len(self.failed)})", "-" * 80])
            for item in self.failed:
                lines.append(f"  {item.source_id} {item.title[:60]}: {item.reason}")

        partial = self.get_items_by_status(ItemStatus.PARTIAL)
        if partial:
            lines.extend(["", "-" * 80, f"PARTIALLY MOVED POSTS ({len(partial)})", "-" * 80])
            for item in partial:
                lines.append(f"  {item.source_id} -> {item.new_id}")
                for warning in item.warnings[:5]:
                    lines.append(f"    - {warning[:100]}")
                if len(item.warnings) > 5:
                    lines.append(f"    ... and {len(item.warnings) - 5} more")

        lines.append("=" * 80)
        return "\n".join(lines)
