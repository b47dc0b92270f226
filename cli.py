#!/usr/bin/env python3
"""
Multisite CLI

Command-line interface for site-wide operations on a multisite network:
emptying a site, moving posts between sites, and creating, deleting and
listing sites.
"""

import sys
import click
from typing import Optional

import multisite
from config import (
    MAIN_SITE_ID,
    OUTPUT_FORMATS,
    DEFAULT_OUTPUT_FORMAT,
    UPLOADS_DIR,
    UPLOADS_BASE_URL,
)
from logging_config import logger
from migration import run_move
from multisite.cache import ObjectCache
from multisite.errors import MultisiteError
from output_formats import format_items


class SiteCLI:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        self.db = None
        self.cache = ObjectCache()

    def connect(self) -> multisite.MultisiteDatabase:
        """Open the database on first use"""
        if self.db is None:
            self.db = multisite.MultisiteDatabase(self.db_path)
        return self.db

    def close(self):
        if self.db is not None:
            self.db.close()
            self.db = None

    def fail(self, message: str):
        click.echo(f"❌ {message}", err=True)
        sys.exit(1)

    def empty_site(self, blog_id: int, yes: bool):
        """Empty a site of posts, comments and terms"""
        db = self.connect()
        ctx = db.context(blog_id, self.cache)
        if not db.site_tables_exist(blog_id):
            self.fail(f"Site {blog_id} not found.")

        url = multisite.sites.site_url(ctx)
        if not yes:
            click.confirm(
                f"Are you sure you want to empty the site at {url} of all posts, "
                "comments, and terms?",
                abort=True,
            )

        try:
            result = multisite.empty_site(ctx)
        except MultisiteError as e:
            logger.log_error(e, {"operation": "empty_site", "blog_id": blog_id})
            self.fail(str(e))
            return

        click.echo(
            f"🗑️  Removed {result['posts']} posts, {result['comments']} comments, "
            f"{result['terms']} terms"
        )
        click.echo(f"✅ The site at {url} was emptied.")

    def move_posts(
        self,
        blog_id: int,
        term_id: int,
        source_blog_id: int,
        report_file: Optional[str],
    ):
        """Move posts to another site"""
        db = self.connect()
        click.echo(f"Moving objects to {blog_id}")
        try:
            report = run_move(
                db,
                blog_id,
                term_id=term_id,
                source_blog_id=source_blog_id,
                cache=self.cache,
                uploads_dir=UPLOADS_DIR,
                uploads_url=UPLOADS_BASE_URL,
                report_file=report_file,
            )
        except MultisiteError as e:
            self.fail(str(e))
            return

        click.echo(f"Total Posts: {report.total}")
        click.echo()
        click.echo(report.generate_report())
        if report_file:
            click.echo(f"📄 Report written to {report_file}")

        if report.total and not report.created:
            self.fail("No posts could be moved.")
        if report.has_failures():
            click.echo(f"⚠️  {len(report.failed)} posts failed to be moved")
        click.echo("✅ Posts moved!")

    def delete_site(
        self,
        site_id: Optional[int],
        slug: Optional[str],
        yes: bool,
        keep_tables: bool,
    ):
        """Delete a site"""
        db = self.connect()
        try:
            blog = multisite.find_site(db, site_id=site_id, slug=slug, cache=self.cache)
        except MultisiteError as e:
            self.fail(str(e))
            return

        if not yes:
            click.confirm(
                f"Are you sure you want to delete the {blog['siteurl']} site?",
                abort=True,
            )

        try:
            multisite.delete_site(db, blog, keep_tables=keep_tables, cache=self.cache)
        except MultisiteError as e:
            logger.log_error(e, {"operation": "delete_site", "blog_id": blog["blog_id"]})
            self.fail(str(e))
            return

        click.echo(f"✅ The site at {blog['siteurl']} was deleted.")

    def create_site(
        self,
        slug: str,
        title: Optional[str],
        email: Optional[str],
        network_id: Optional[int],
        private: bool,
        porcelain: bool,
    ):
        """Create a site"""
        db = self.connect()
        try:
            result = multisite.create_site(
                db,
                slug,
                title=title,
                email=email or "",
                network_id=network_id,
                private=private,
            )
        except MultisiteError as e:
            logger.log_error(e, {"operation": "create_site", "slug": slug})
            self.fail(str(e))
            return

        if porcelain:
            click.echo(result["blog_id"])
        else:
            click.echo(f"✅ Site {result['blog_id']} created: {result['url']}")

    def list_sites(self, network_id: Optional[int], output_format: str, fields: Optional[str]):
        """List sites"""
        db = self.connect()
        try:
            blogs = multisite.list_sites(db, network_id)
            output = format_items(output_format, blogs, multisite.parse_fields(fields))
        except (MultisiteError, ValueError) as e:
            self.fail(str(e))
            return

        if output:
            click.echo(output)


@click.group()
@click.option(
    "--db",
    "db_path",
    envvar="MULTISITE_DB_PATH",
    type=click.Path(dir_okay=False),
    help="Path to the multisite database",
)
@click.pass_context
def main(ctx: click.Context, db_path: Optional[str]):
    """Multisite CLI - site-wide operations for a multisite network"""
    ctx.obj = SiteCLI(db_path)
    ctx.call_on_close(ctx.obj.close)


@main.group()
def site():
    """Perform site-wide operations."""
    pass


@site.command("empty")
@click.option(
    "--blog_id",
    "--blog-id",
    "blog_id",
    type=int,
    default=MAIN_SITE_ID,
    show_default=True,
    help="Site to empty",
)
@click.option("--yes", is_flag=True, help="Proceed without a confirmation prompt")
@click.pass_obj
def empty(cli: SiteCLI, blog_id: int, yes: bool):
    """Empty a site of its content (posts, comments, and terms)."""
    cli.empty_site(blog_id, yes)


@site.command()
@click.option(
    "--blog_id", "--blog-id", "blog_id", type=int, required=True, help="Destination site"
)
@click.option(
    "--term_id",
    "--term-id",
    "term_id",
    type=int,
    default=0,
    help="Only move posts in this term",
)
@click.option(
    "--from",
    "source_blog_id",
    type=int,
    default=MAIN_SITE_ID,
    show_default=True,
    help="Site to move posts from",
)
@click.option(
    "--report-file",
    type=click.Path(dir_okay=False),
    help="Write a JSONL report of every moved post",
)
@click.pass_obj
def move(
    cli: SiteCLI,
    blog_id: int,
    term_id: int,
    source_blog_id: int,
    report_file: Optional[str],
):
    """Move posts, with their meta, attachments and comments, to another site."""
    cli.move_posts(blog_id, term_id, source_blog_id, report_file)


@site.command()
@click.argument("site_id", type=int, required=False)
@click.option("--slug", help="Path of the site to delete")
@click.option("--yes", is_flag=True, help="Answer yes to the confirmation message")
@click.option(
    "--keep-tables",
    is_flag=True,
    help="Delete the site from the list, but don't drop its tables",
)
@click.pass_obj
def delete(
    cli: SiteCLI,
    site_id: Optional[int],
    slug: Optional[str],
    yes: bool,
    keep_tables: bool,
):
    """Delete a site in a multisite install."""
    cli.delete_site(site_id, slug, yes, keep_tables)


@site.command()
@click.option("--slug", required=True, help="Path for the new site")
@click.option("--title", help="Title of the new site. Default: prettified slug")
@click.option("--email", help="Email for the admin user, created if none exists")
@click.option(
    "--network_id",
    "--network-id",
    "network_id",
    type=int,
    help="Network to associate the new site with",
)
@click.option("--private", is_flag=True, help="Make the new site non-public")
@click.option("--porcelain", is_flag=True, help="Only output the site id")
@click.pass_obj
def create(
    cli: SiteCLI,
    slug: str,
    title: Optional[str],
    email: Optional[str],
    network_id: Optional[int],
    private: bool,
    porcelain: bool,
):
    """Create a site in a multisite install."""
    cli.create_site(slug, title, email, network_id, private, porcelain)


@site.command("list")
@click.option("--network", "network_id", type=int, help="Network the sites belong to")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default=DEFAULT_OUTPUT_FORMAT,
    show_default=True,
    help="Output format",
)
@click.option("--fields", help="Comma-separated list of fields to show")
@click.pass_obj
def list_command(
    cli: SiteCLI, network_id: Optional[int], output_format: str, fields: Optional[str]
):
    """List all sites in a multisite install."""
    cli.list_sites(network_id, output_format, fields)


if __name__ == "__main__":
    main()
