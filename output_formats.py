"""
Output formatting for Multisite CLI list commands
"""

import csv
import io
import json
from typing import List, Dict, Any, Iterable

from config import OUTPUT_FORMATS, CSV_DELIMITER, CSV_QUOTECHAR


def _pick(item: Dict[str, Any], fields: List[str]) -> Dict[str, Any]:
    missing = [f for f in fields if f not in item]
    if missing:
        raise ValueError(f"Invalid field: {', '.join(missing)}")
    return {f: item[f] for f in fields}


def format_table(rows: List[Dict[str, Any]], fields: List[str]) -> str:
    """ASCII table with a header row"""
    widths = {f: len(f) for f in fields}
    for row in rows:
        for f in fields:
            widths[f] = max(widths[f], len(str(row[f])))

    border = "+" + "+".join("-" * (widths[f] + 2) for f in fields) + "+"

    def line(values: Dict[str, Any]) -> str:
        return "| " + " | ".join(str(values[f]).ljust(widths[f]) for f in fields) + " |"

    lines = [border, line({f: f for f in fields}), border]
    lines.extend(line(row) for row in rows)
    lines.append(border)
    return "\n".join(lines)


def format_csv(rows: List[Dict[str, Any]], fields: List[str]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=fields,
        delimiter=CSV_DELIMITER,
        quotechar=CSV_QUOTECHAR,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue().rstrip("\n")


def format_items(output_format: str, items: Iterable[Dict[str, Any]], fields: List[str]) -> str:
    """Render items as table, csv, json or url

    The url format ignores fields and prints each item's url on its own line.
    """
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(
            f"Invalid format: {output_format}. Choose from {', '.join(OUTPUT_FORMATS)}"
        )

    items = list(items)
    if output_format == "url":
        return "\n".join(str(item["url"]) for item in items)

    rows = [_pick(item, fields) for item in items]
    if output_format == "json":
        return json.dumps(rows)
    if output_format == "csv":
        return format_csv(rows, fields)
    return format_table(rows, fields)
