"""
Tests for migration.migrator

Tests moving posts between sites:
- Counts, metadata and comments carried over
- Attachment re-hosting and locator rewriting in the post body
- Per-item failures that do not stop the batch
- Cursor batching
"""

import json
import sqlite3
import shutil
import tempfile
import unittest
from unittest.mock import patch

import pytest
import requests

from migration.migrator import ContentMigrator
from migration.orchestrator import run_move
from migration.report import ItemStatus
from multisite import comments, posts
from multisite.errors import (
    CommentInsertError,
    MultisiteError,
    PostInsertError,
    SiteNotFoundError,
)
from multisite.terms import add_object_term, insert_term

from site_fixtures import (
    make_network,
    add_site,
    add_post,
    add_attachment,
    add_comment,
    fake_response,
)

UPLOADS_URL = "https://dest.example.com/files"


class MigratorTestCase(unittest.TestCase):

    def setUp(self):
        """Set up a network with a source (1) and destination (2) site"""
        self.temp_dir = tempfile.mkdtemp()
        self.db = make_network(self.temp_dir)
        self.dest_id = add_site(self.db, "archive")
        self.source = self.db.context(1)
        self.dest = self.db.context(self.dest_id)

    def tearDown(self):
        """Clean up temporary files"""
        self.db.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def migrator(self, **kwargs):
        kwargs.setdefault("uploads_dir", self.temp_dir)
        kwargs.setdefault("uploads_url", UPLOADS_URL)
        return ContentMigrator(self.source, self.dest, **kwargs)

    def dest_rows(self, table, where="1 = 1", params=()):
        return self.db.conn.execute(
            f"SELECT * FROM {self.dest.table(table)} WHERE {where}", params
        ).fetchall()


class TestScenario(MigratorTestCase):
    """Three posts, one of them with two attachments and a comment"""

    def setUp(self):
        super().setUp()
        self.first = add_post(self.source, "First", "plain body", meta={"color": "red"})
        self.body = (
            '<img src="http://src.example.com/a.png"> and '
            '<a href="http://src.example.com/b.pdf">doc</a> '
            'again <img src="http://src.example.com/a.png">'
        )
        self.rich = add_post(self.source, "Rich", self.body, meta={"layout": "wide", "views": "12"})
        add_attachment(self.source, self.rich, "http://src.example.com/a.png")
        add_attachment(self.source, self.rich, "http://src.example.com/b.pdf")
        self.comment = add_comment(self.source, self.rich, "Nice post", meta={"rating": "5"})
        self.third = add_post(self.source, "Third", "third body")

    @patch("multisite.media.requests.get")
    def test_three_posts_are_moved(self, mock_get):
        """Test the destination ends up with three posts"""
        mock_get.return_value = fake_response()

        report = self.migrator().run()

        self.assertEqual(report.total, 3)
        self.assertEqual(len(report.created), 3)
        self.assertFalse(report.has_failures())
        self.assertEqual(posts.count_posts(self.dest, "post"), 3)

    @patch("multisite.media.requests.get")
    def test_attachment_locators_rewritten(self, mock_get):
        """Test every old locator in the body is replaced by its new one"""
        mock_get.return_value = fake_response()

        report = self.migrator().run()
        new_id = report.id_map()[self.rich]
        content = posts.get_post(self.dest, new_id)["post_content"]

        self.assertNotIn("http://src.example.com/a.png", content)
        self.assertNotIn("http://src.example.com/b.pdf", content)

        attachments = posts.get_attachments(self.dest, new_id)
        self.assertEqual(len(attachments), 2)
        new_urls = [a["guid"] for a in attachments]
        for url in new_urls:
            self.assertTrue(url.startswith(UPLOADS_URL + f"/sites/{self.dest_id}/"))
        self.assertEqual(content.count(new_urls[0]), 2)
        self.assertEqual(content.count(new_urls[1]), 1)

        mock_get.assert_any_call("http://src.example.com/a.png", timeout=30)
        mock_get.assert_any_call("http://src.example.com/b.pdf", timeout=30)

    @patch("multisite.media.requests.get")
    def test_comment_linked_to_new_parent(self, mock_get):
        """Test the comment is created under the new post id with its meta"""
        mock_get.return_value = fake_response()

        report = self.migrator().run()
        new_id = report.id_map()[self.rich]

        moved = self.dest_rows("comments")
        self.assertEqual(len(moved), 1)
        self.assertEqual(moved[0]["comment_post_ID"], new_id)
        self.assertEqual(moved[0]["comment_content"], "Nice post")

        meta = comments.get_comment_meta(self.dest, moved[0]["comment_ID"])
        self.assertEqual([(m["meta_key"], m["meta_value"]) for m in meta], [("rating", "5")])
        self.assertEqual(posts.get_post(self.dest, new_id)["comment_count"], 1)

    @patch("multisite.media.requests.get")
    def test_metadata_key_sets_match(self, mock_get):
        """Test each moved post has exactly its source meta keys"""
        mock_get.return_value = fake_response()

        report = self.migrator().run()

        for source_id, new_id in report.id_map().items():
            source_keys = {m["meta_key"] for m in posts.get_post_meta(self.source, source_id)}
            dest_keys = {
                m["meta_key"]
                for m in posts.get_post_meta(self.dest, new_id)
            }
            self.assertEqual(source_keys, dest_keys)

    @patch("multisite.media.requests.get")
    def test_source_is_not_modified(self, mock_get):
        """Test the source site keeps its posts, comments and bodies"""
        mock_get.return_value = fake_response()
        before = [dict(r) for r in self.db.conn.execute(
            f"SELECT * FROM {self.source.table('posts')} ORDER BY ID"
        )]

        self.migrator().run()

        after = [dict(r) for r in self.db.conn.execute(
            f"SELECT * FROM {self.source.table('posts')} ORDER BY ID"
        )]
        self.assertEqual(before, after)
        self.assertEqual(len(comments.get_comments(self.source, self.rich)), 1)

    @patch("multisite.media.requests.get")
    def test_scalar_fields_copied(self, mock_get):
        """Test title, status and dates come across unchanged"""
        mock_get.return_value = fake_response()
        original = posts.get_post(self.source, self.third)

        report = self.migrator().run()
        copied = posts.get_post(self.dest, report.id_map()[self.third])

        for field in ("post_title", "post_content", "post_status", "post_date", "post_name", "post_type"):
            self.assertEqual(copied[field], original[field])
        self.assertNotEqual(copied["ID"], 0)


class TestItemFailures(MigratorTestCase):
    """Per-item failures are reported without aborting the batch"""

    def setUp(self):
        super().setUp()
        self.good = add_post(self.source, "Good", "ok")
        self.broken = add_post(self.source, "Broken", "never arrives", meta={"k": "v"})
        add_comment(self.source, self.broken, "lost comment")
        self.last = add_post(self.source, "Last", "ok too")
        add_comment(self.source, self.last, "kept comment")

    def test_failed_post_is_skipped_with_its_comments(self):
        """Test a post that cannot be created yields no comments or meta"""
        real_insert = posts.insert_post

        def flaky_insert(ctx, data):
            if data.get("post_title") == "Broken":
                raise PostInsertError("disk full")
            return real_insert(ctx, data)

        with patch("multisite.posts.insert_post", side_effect=flaky_insert):
            report = self.migrator().run()

        self.assertEqual(len(report.failed), 1)
        failed = report.failed[0]
        self.assertEqual(failed.source_id, self.broken)
        self.assertEqual(failed.status, ItemStatus.FAILED)
        self.assertIn("disk full", failed.reason)
        self.assertIsNone(failed.new_id)

        # created = source count - failures
        self.assertEqual(posts.count_posts(self.dest, "post"), report.total - len(report.failed))

        moved_comments = self.dest_rows("comments")
        self.assertEqual([c["comment_content"] for c in moved_comments], ["kept comment"])
        self.assertEqual(len(self.dest_rows("postmeta", "meta_key = ?", ("k",))), 0)

    @patch("multisite.media.requests.get")
    def test_sideload_failure_keeps_post(self, mock_get):
        """Test an unreachable attachment marks the post partial, not failed"""
        mock_get.side_effect = requests.ConnectionError("host down")
        add_attachment(self.source, self.good, "http://src.example.com/gone.png")

        report = self.migrator().run()

        self.assertFalse(report.has_failures())
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.status, ItemStatus.PARTIAL)
        self.assertEqual(item.attachments_migrated, 0)
        self.assertTrue(any("gone.png" in w for w in item.warnings))
        self.assertEqual(posts.count_posts(self.dest, "post"), 3)

    def test_comment_failure_is_recorded(self):
        """Test a comment that cannot be created does not stop the others"""
        real_insert = comments.insert_comment

        def flaky_comment(ctx, post_id, data):
            if data["comment_content"] == "lost comment":
                raise CommentInsertError("rejected")
            return real_insert(ctx, post_id, data)

        with patch("multisite.comments.insert_comment", side_effect=flaky_comment):
            report = self.migrator().run()

        broken = next(i for i in report.items if i.source_id == self.broken)
        self.assertEqual(broken.status, ItemStatus.PARTIAL)
        self.assertEqual(broken.comments_failed, 1)
        self.assertEqual(report.get_stats()["comments"], 1)

    def assert_batch_continued(self, report):
        self.assertEqual(report.total, 3)
        self.assertFalse(report.has_failures())
        self.assertEqual(posts.count_posts(self.dest, "post"), 3)

    @patch("multisite.media.requests.get")
    def test_oversized_attachment_name(self, mock_get):
        """Test a locator whose file name is too long for the filesystem is shortened"""
        mock_get.return_value = fake_response()
        long_url = "http://src.example.com/" + "a" * 300 + ".png"
        add_attachment(self.source, self.good, long_url)

        report = self.migrator().run()

        self.assert_batch_continued(report)
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.status, ItemStatus.MIGRATED)
        self.assertEqual(item.attachments_migrated, 1)
        new_url = posts.get_attachments(self.dest, item.new_id)[0]["guid"]
        filename = new_url.rsplit("/", 1)[-1]
        self.assertTrue(filename.endswith(".png"))
        self.assertLessEqual(len(filename), 200)

    @patch("multisite.media.requests.get")
    def test_nul_byte_in_locator(self, mock_get):
        """Test an encoded NUL in the locator does not stop the move"""
        mock_get.return_value = fake_response()
        add_attachment(self.source, self.good, "http://src.example.com/bad%00name.png")

        report = self.migrator().run()

        self.assert_batch_continued(report)
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.attachments_migrated, 1)

    @patch("pathlib.Path.write_bytes", side_effect=OSError(28, "No space left on device"))
    @patch("multisite.media.requests.get")
    def test_uploads_write_failure(self, mock_get, mock_write):
        """Test a full uploads directory marks the post partial and the batch continues"""
        mock_get.return_value = fake_response()
        add_attachment(self.source, self.good, "http://src.example.com/a.png")

        report = self.migrator().run()

        self.assert_batch_continued(report)
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.status, ItemStatus.PARTIAL)
        self.assertEqual(item.attachments_migrated, 0)
        self.assertTrue(any("No space left" in w for w in item.warnings))

    @patch("multisite.media.requests.get")
    def test_attachment_meta_write_failure(self, mock_get):
        """Test a failed attachment meta write is a warning on the post"""
        mock_get.return_value = fake_response()
        add_attachment(self.source, self.good, "http://src.example.com/a.png")
        real_meta = posts.update_post_meta

        def flaky_meta(ctx, post_id, key, value):
            if key == "_wp_attached_file":
                raise sqlite3.OperationalError("database is locked")
            return real_meta(ctx, post_id, key, value)

        with patch("multisite.posts.update_post_meta", side_effect=flaky_meta):
            report = self.migrator().run()

        self.assert_batch_continued(report)
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.status, ItemStatus.PARTIAL)

    @patch("multisite.media.requests.get")
    def test_body_update_failure(self, mock_get):
        """Test a failed body rewrite is a warning and later posts are still moved"""
        mock_get.return_value = fake_response()
        add_attachment(self.source, self.good, "http://src.example.com/a.png")

        with patch(
            "multisite.posts.update_post_content",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            report = self.migrator().run()

        self.assert_batch_continued(report)
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.status, ItemStatus.PARTIAL)
        self.assertTrue(any("body not rewritten" in w for w in item.warnings))

    def test_comment_meta_failure(self):
        """Test a failed comment meta write keeps the comment and the rest of the batch"""
        add_comment(self.source, self.good, "rated", meta={"rating": "4"})

        with patch(
            "multisite.comments.update_comment_meta",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            report = self.migrator().run()

        self.assert_batch_continued(report)
        item = next(i for i in report.items if i.source_id == self.good)
        self.assertEqual(item.status, ItemStatus.PARTIAL)
        self.assertEqual(item.comments_migrated, 1)
        last = next(i for i in report.items if i.source_id == self.last)
        self.assertEqual(last.comments_migrated, 1)


class TestBatching(MigratorTestCase):
    """Cursor pagination over the source posts"""

    def add_posts(self, count):
        return [add_post(self.source, f"Post {n}", f"body {n}") for n in range(count)]

    def test_empty_source(self):
        """Test nothing is read or written when there are no posts"""
        report = self.migrator().run()

        self.assertEqual(report.total, 0)
        self.assertEqual(report.batches, [])
        self.assertEqual(posts.count_posts(self.dest, "post"), 0)

    def test_each_post_visited_once_while_source_shrinks(self):
        """Test deleting already-moved rows does not make the cursor skip posts"""
        ids = self.add_posts(5)
        source = self.source
        db = self.db

        class ShrinkingSource(ContentMigrator):
            def migrate_post(self, post):
                result = super().migrate_post(post)
                if post["ID"] == ids[1]:
                    db.conn.execute(
                        f"DELETE FROM {source.table('posts')} WHERE ID IN (?, ?)",
                        (ids[0], ids[1]),
                    )
                    db.conn.commit()
                return result

        report = ShrinkingSource(
            self.source, self.dest, batch_size=2, uploads_dir=self.temp_dir
        ).run()

        self.assertEqual([i.source_id for i in report.items], ids)

    def test_posts_added_during_move_visited_once(self):
        """Test rows inserted mid-run never cause an already moved post to repeat"""
        ids = self.add_posts(4)
        source = self.source
        added = []

        class GrowingSource(ContentMigrator):
            def migrate_post(self, post):
                result = super().migrate_post(post)
                if post["ID"] == ids[0]:
                    added.append(add_post(source, "Late", "late body"))
                return result

        report = GrowingSource(
            self.source, self.dest, batch_size=2, uploads_dir=self.temp_dir
        ).run()

        visited = [i.source_id for i in report.items]
        self.assertEqual(len(visited), len(set(visited)))
        self.assertEqual(visited, ids + added)

    def test_only_posts_are_moved(self):
        """Test pages and attachments are not picked up as items"""
        self.add_posts(2)
        add_post(self.source, "About", "page", post_type="page")

        report = self.migrator().run()

        self.assertEqual(report.total, 2)
        self.assertEqual(posts.count_posts(self.dest, "page"), 0)


class TestParametrizedBatching:
    """Pytest-style parametrized tests for batch boundaries"""

    @pytest.mark.parametrize(
        "batch_size,post_count,expected_batches",
        [
            (3, 4, [3, 1]),
            (3, 6, [3, 3]),
            (3, 2, [2]),
            (1, 3, [1, 1, 1]),
            (500, 501, [500, 1]),
        ],
    )
    def test_batch_sizes(self, tmp_path, batch_size, post_count, expected_batches):
        """Test the batches issued for a given source count and batch size"""
        db = make_network(str(tmp_path))
        try:
            dest_id = add_site(db, "archive")
            source = db.context(1)
            for n in range(post_count):
                add_post(source, f"Post {n}", f"body {n}")

            report = ContentMigrator(
                source, db.context(dest_id), batch_size=batch_size, uploads_dir=str(tmp_path)
            ).run()

            assert report.batches == expected_batches
            assert len(report.created) == post_count
        finally:
            db.close()


class TestTermFilter(MigratorTestCase):

    def test_only_posts_in_term_are_moved(self):
        """Test a term filter restricts the moved posts"""
        news_id, news_tt = insert_term(self.source, "News", "news", "category")
        tagged = add_post(self.source, "Tagged", "in news")
        add_post(self.source, "Untagged", "elsewhere")
        add_object_term(self.source, tagged, news_tt)

        report = self.migrator(term_id=news_id).run()

        self.assertEqual(report.total, 1)
        self.assertEqual([i.source_id for i in report.items], [tagged])
        self.assertEqual(report.term_id, news_id)

    def test_post_in_term_under_two_taxonomies_moved_once(self):
        """Test a term shared by two taxonomies does not duplicate posts"""
        term_id, category_tt = insert_term(self.source, "Shared", "shared", "category")
        self.db.conn.execute(
            f"INSERT INTO {self.source.table('term_taxonomy')} (term_id, taxonomy) VALUES (?, ?)",
            (term_id, "post_tag"),
        )
        self.db.conn.commit()
        tag_tt = self.db.conn.execute(
            f"SELECT term_taxonomy_id FROM {self.source.table('term_taxonomy')} "
            "WHERE term_id = ? AND taxonomy = 'post_tag'",
            (term_id,),
        ).fetchone()[0]
        post_id = add_post(self.source, "Both", "body")
        add_object_term(self.source, post_id, category_tt)
        add_object_term(self.source, post_id, tag_tt)

        report = self.migrator(term_id=term_id).run()

        self.assertEqual(report.total, 1)
        self.assertEqual(len(report.items), 1)


class TestCommentThreads(MigratorTestCase):

    def test_reply_parent_remapped(self):
        """Test a reply points at the moved copy of its parent comment"""
        post_id = add_post(self.source, "Thread", "body")
        parent = add_comment(self.source, post_id, "question")
        add_comment(self.source, post_id, "answer", parent=parent)

        self.migrator().run()

        moved = {c["comment_content"]: c for c in self.dest_rows("comments")}
        self.assertEqual(moved["question"]["comment_parent"], 0)
        self.assertEqual(
            moved["answer"]["comment_parent"], moved["question"]["comment_ID"]
        )


class TestPreconditions(MigratorTestCase):

    def test_same_site_rejected(self):
        """Test moving a site onto itself is refused"""
        with self.assertRaises(MultisiteError):
            ContentMigrator(self.source, self.source).run()

    def test_missing_destination_rejected(self):
        """Test a destination without tables is refused before any write"""
        add_post(self.source, "Post", "body")
        with self.assertRaises(SiteNotFoundError):
            ContentMigrator(self.source, self.db.context(99)).run()


class TestRunMove(MigratorTestCase):

    @patch("builtins.print")
    def test_run_move_counts_once_and_prints_nothing(self, mock_print):
        """Test the reported total comes from a single count and output is left to the caller"""
        add_post(self.source, "One", "1")
        add_post(self.source, "Two", "2")
        path = f"{self.temp_dir}/move.jsonl"

        with patch("multisite.posts.count_posts", wraps=posts.count_posts) as mock_count:
            report = run_move(self.db, self.dest_id, uploads_dir=self.temp_dir, report_file=path)

        mock_count.assert_called_once()
        self.assertEqual(report.total, 2)
        self.assertEqual(len(report.created), 2)
        mock_print.assert_not_called()
        with open(path, encoding="utf-8") as f:
            self.assertEqual(len(f.readlines()), 3)

    def test_run_move_unknown_site(self):
        """Test a missing destination is reported before anything is read"""
        with self.assertRaises(SiteNotFoundError):
            run_move(self.db, 77)


class TestReportOutput(MigratorTestCase):

    @patch("multisite.media.requests.get")
    def test_write_jsonl(self, mock_get):
        """Test the report is written as a header plus one line per post"""
        mock_get.return_value = fake_response()
        add_post(self.source, "One", "1")
        add_post(self.source, "Two", "2")
        path = f"{self.temp_dir}/reports/move.jsonl"

        report = self.migrator().run()
        report.write_jsonl(path)

        with open(path, encoding="utf-8") as f:
            lines = [json.loads(line) for line in f]
        self.assertEqual(lines[0]["type"], "move_report_header")
        self.assertEqual(lines[0]["stats"]["migrated"], 2)
        self.assertEqual([l["status"] for l in lines[1:]], ["MIGRATED", "MIGRATED"])

    def test_generate_report_lists_failures(self):
        """Test the summary names failed posts"""
        add_post(self.source, "Broken", "x")
        with patch("multisite.posts.insert_post", side_effect=PostInsertError("nope")):
            report = self.migrator().run()

        summary = report.generate_report()
        self.assertIn("FAILED POSTS (1)", summary)
        self.assertIn("nope", summary)


if __name__ == "__main__":
    unittest.main()
