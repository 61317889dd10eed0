from __future__ import annotations

import html
import re
import shutil
from pathlib import Path
from typing import NamedTuple

import markdown

from .errors import TemplateError
from .extensions import HeadingIdExtension

LAYOUT_FILE = Path("layout.html")
HEADER_FILE = Path("partials") / "header.html"
FOOTER_FILE = Path("partials") / "footer.html"
REQUIRED_LAYOUT_KEYS = ("HEADER", "FOOTER", "CONTENT")
HEADING_PUNCT_RE = re.compile(r"[^\w\s-]", re.UNICODE)
WHITESPACE_RE = re.compile(r"\s+")


class Templates(NamedTuple):
    layout: str
    header: str
    footer: str


def heading_slug(value: str, separator: str) -> str:
    value = HEADING_PUNCT_RE.sub("", value.strip().lower())
    return WHITESPACE_RE.sub(separator, value)


def render_markdown(text: str) -> str:
    """Compile a markdown body to HTML.

    Headings get stable ids and link to themselves. Raw HTML is passed
    through untouched, content authors are trusted.
    """
    md =markdown.Markdown(
        extensions=[
            "fenced_code",
            "tables",
            "codehilite",
            "toc",
            "pymdownx.tilde",
            "pymdownx.magiclink",
            "pymdownx.tasklist",
            HeadingIdExtension(slugify=heading_slug, separator="-"),
        ],
        extension_configs={
            "codehilite": {"guess_lang": False},
            "toc": {"slugify": heading_slug, "separator": "-", "anchorlink": True},
            "pymdownx.tilde": {"subscript": False},
        },
    )
    return md.convert(text)


def render_template(template: str, late_keys: tuple[str, ...] = ("CONTENT",), **context: str) -> str:
    output = template
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def compose_page(templates: Templates, *, title: str, content: str, prefix: str = "", version: str = "") -> str:
    # Partials first: they carry their own {{PREFIX}} links and are embedded
    # into the layout already resolved.
    header = render_template(templates.header, PREFIX=prefix)
    footer = render_template(templates.footer, PREFIX=prefix)
    page = render_template(
        templates.layout,
        HEADER=header,
        FOOTER=footer,
        TITLE=html.escape(title or ""),
        PREFIX=prefix,
        CONTENT=content,
    )
    return render_template(page, VERSION=version)


def read_template(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateError(f"Cannot read template {path}: {exc}") from exc


def load_templates(templates_dir: Path) -> Templates:
    templates = Templates(
        layout=read_template(templates_dir / LAYOUT_FILE),
        header=read_template(templates_dir / HEADER_FILE),
        footer=read_template(templates_dir / FOOTER_FILE),
    )
    missing = [key for key in REQUIRED_LAYOUT_KEYS if f"{{{{{key}}}}}" not in templates.layout]
    if missing:
        names = ", ".join(f"{{{{{key}}}}}" for key in missing)
        raise TemplateError(f"Layout template {templates_dir / LAYOUT_FILE} is missing {names}")
    return templates


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    for item in static_dir.iterdir():
        dest = output_dir / item.name
        if item.is_dir():
            if dest.exists():
                shutil.rmtree(dest)
            shutil.copytree(item, dest)
        else:
            shutil.copy2(item, dest)
