"""
Per-site option storage
"""

from typing import Any, Optional

from .database import SiteContext


def get_option(ctx: SiteContext, name: str, default: Optional[Any] = None) -> Optional[Any]:
    cached = ctx.cache_get(name, "options")
    if cached is not None:
        return cached
    row = ctx.conn.execute(
        f"SELECT option_value FROM {ctx.table('options')} WHERE option_name = ?",
        (name,),
    ).fetchone()
    if row is None:
        return default
    ctx.cache_set(name, row["option_value"], "options")
    return row["option_value"]


def update_option(ctx: SiteContext, name: str, value: Any) -> None:
    ctx.conn.execute(
        f"INSERT INTO {ctx.table('options')} (option_name, option_value) VALUES (?, ?) "
        "ON CONFLICT(option_name) DO UPDATE SET option_value = excluded.option_value",
        (name, str(value)),
    )
    ctx.conn.commit()
    ctx.cache_delete(name, "options")


def delete_option(ctx: SiteContext, name: str) -> bool:
    cursor = ctx.conn.execute(
        f"DELETE FROM {ctx.table('options')} WHERE option_name = ?", (name,)
    )
    ctx.conn.commit()
    ctx.cache_delete(name, "options")
    return cursor.rowcount > 0
