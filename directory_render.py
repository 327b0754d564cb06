"""Render a list of directory entries as table, JSON, CSV, HTML or Markdown text."""

import csv
import html
import io
import json
from typing import Callable, Dict, List, Optional, Sequence

from slack_directory import ENTRY_FIELDS, DirectoryEntry, OutputFormat


NOT_AVAILABLE = "N/A"
DIRECTORY_TITLE = "Slack Team Directory"

TABLE_COLUMNS = ("Name", "handle", "phone", "email", "status", "picture url")
TABLE_WIDTHS = (20, 12, 15, 30, 8, 10)


def _or_na(value: Optional[str]) -> str:
    return NOT_AVAILABLE if value is None else value


def _table_line(cells: Sequence[str]) -> str:
    return " | ".join(f"{cell:<{width}}" for cell, width in zip(cells, TABLE_WIDTHS)).rstrip()


def render_table(entries: List[DirectoryEntry]) -> str:
    lines = [_table_line(TABLE_COLUMNS)]
    for entry in entries:
        lines.append(
            _table_line(
                (
                    entry.name,
                    entry.handle,
                    _or_na(entry.phone_number),
                    _or_na(entry.email),
                    # Presence is never fetched, so the table does not pretend to know it.
                    NOT_AVAILABLE,
                    _or_na(entry.picture_url),
                )
            )
        )
    return "\n".join(lines) + "\n"


def render_json(entries: List[DirectoryEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries], indent=2) + "\n"


def render_csv(entries: List[DirectoryEntry]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=ENTRY_FIELDS)
    writer.writeheader()
    for entry in entries:
        writer.writerow(entry.to_dict())
    return buf.getvalue()


def render_html(entries: List[DirectoryEntry]) -> str:
    """
    Static HTML page with one <div> per entry.
    Profile values are escaped; absent values show as N/A.
    """
    esc = html.escape
    lines = ["<html><body>", f"<h1>{DIRECTORY_TITLE}</h1>"]
    for entry in entries:
        email = esc(_or_na(entry.email))
        lines.extend(
            [
                "  <div>",
                f"    <h2>{esc(entry.name)}</h2>",
                f"    <img src=\"{esc(_or_na(entry.picture_url))}\" style='height: 48px; width: auto;'></img>",
                f"    <h3>Slack: {esc(entry.handle)}</h3>",
                f"    <h3>Phone: {esc(_or_na(entry.phone_number))}</h3>",
                f"    <h3>Email: <a href=\"mailto:{email}\">{email}</a></h3>",
                "  </div>",
            ]
        )
    lines.append("</body></html>")
    return "\n".join(lines) + "\n"


def _md_cell(value: Optional[str]) -> str:
    return _or_na(value).replace("|", "\\|").replace("\n", " ")


def render_markdown(entries: List[DirectoryEntry]) -> str:
    lines = [
        f"# {DIRECTORY_TITLE}",
        "",
        "| Name | Handle | Phone | Email | Picture |",
        "| --- | --- | --- | --- | --- |",
    ]
    for entry in entries:
        cells = (entry.name, entry.handle, entry.phone_number, entry.email, entry.picture_url)
        lines.append("| " + " | ".join(_md_cell(c) for c in cells) + " |")
    return "\n".join(lines) + "\n"


RENDERERS: Dict[OutputFormat, Callable[[List[DirectoryEntry]], str]] = {
    OutputFormat.TABLE: render_table,
    OutputFormat.JSON: render_json,
    OutputFormat.CSV: render_csv,
    OutputFormat.HTML: render_html,
    OutputFormat.MARKDOWN: render_markdown,
}

FILE_EXTENSIONS: Dict[OutputFormat, str] = {
    OutputFormat.TABLE: "txt",
    OutputFormat.JSON: "json",
    OutputFormat.CSV: "csv",
    OutputFormat.HTML: "html",
    OutputFormat.MARKDOWN: "md",
}


def render(entries: List[DirectoryEntry], output_format: OutputFormat) -> str:
    return RENDERERS[output_format](entries)
