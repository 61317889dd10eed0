from __future__ import annotations

import datetime as dt
import html
import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from pathlib import Path, PurePosixPath
from typing import NamedTuple, Optional

import yaml

from .errors import ContentError, DuplicateSlugError, FrontMatterError, SlugError
from .render import render_markdown
from .utils import as_utc, iso_date

WORDS_PER_MINUTE = 200
EXCERPT_LIMIT = 160
ELLIPSIS = "…"
UNKNOWN_DATE = "Unknown date"
RESERVED_SLUGS = ("posts", "about")
HOME_PATH = "index.html"
POSTS_INDEX_PATH = "posts/index.html"
ABOUT_PATH = "about/index.html"
FEED_PATH = "feed.xml"
AGGREGATE_PATHS = (HOME_PATH, POSTS_INDEX_PATH, ABOUT_PATH, FEED_PATH)
DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%d %b %Y", "%Y/%m/%d")

FENCED_CODE_RE = re.compile(r"```.*?```", re.DOTALL)
TAG_RE = re.compile(r"<[^>]*>")
IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]+\)")
LINK_RE = re.compile(r"\[[^\]]*\]\([^)]+\)")
MD_PUNCT_RE = re.compile(r"[#>*`_\-\[\]()]")
WHITESPACE_RE = re.compile(r"\s+")
SLUG_ILLEGAL_RE = re.compile(r"[^a-z0-9/_-]+", re.IGNORECASE)
MD_SUFFIX_RE = re.compile(r"\.md$", re.IGNORECASE)
H1_RE = re.compile(r"^#\s+(?P<title>.+?)\s*#*\s*$")


class FrontMatterLoader(yaml.SafeLoader):
    """Safe YAML loader that keeps impossible dates as their raw string."""

    def construct_yaml_timestamp(self, node):
        try:
            return super().construct_yaml_timestamp(node)
        except ValueError:
            return self.construct_scalar(node)


FrontMatterLoader.add_constructor("tag:yaml.org,2002:timestamp", FrontMatterLoader.construct_yaml_timestamp)


class Document(NamedTuple):
    path: str
    text: str


class DateInfo(NamedTuple):
    iso: str
    label: str


@dataclass(frozen=True)
class Post:
    slug: str
    title: str
    author: str
    date: str
    date_iso: str
    date_label: str
    published: Optional[dt.datetime]
    html: str
    minutes: int
    excerpt: str
    output_path: str
    prefix: str
    source: str


def read_document(path: Path, content_root: Path) -> Document:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ContentError(f"Cannot read document {path}: {exc}") from exc
    return Document(path.relative_to(content_root).as_posix(), text)


def parse_front_matter(text: str, source: str = "<document>") -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            end = i
            break
    if end is None:
        return {}, clean_text

    try:
        meta = yaml.load("\n".join(lines[1:end]), Loader=FrontMatterLoader)
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid front matter in {source}: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise FrontMatterError(f"Front matter in {source} must be a mapping, got {type(meta).__name__}")
    body = "\n".join(lines[end + 1 :])
    return meta, body


def extract_title(meta: dict, body: str) -> str:
    title = meta.get("title")
    if title is not None and str(title).strip():
        return str(title).strip()
    in_fence = False
    for line in body.splitlines():
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        match = H1_RE.match(line) if not in_fence else None
        if match:
            return match.group("title")
    return "Untitled"


def _plain_text(md_text: str, drop_links: bool = False) -> str:
    text = FENCED_CODE_RE.sub("", str(md_text))
    text = TAG_RE.sub("", text)
    if drop_links:
        text = IMAGE_RE.sub("", text)
        text = LINK_RE.sub("", text)
    return MD_PUNCT_RE.sub(" ", text)


def estimate_reading_time(md_text: str) -> tuple[int, int]:
    words = len(_plain_text(md_text).split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE)), words


def make_excerpt(md_text: str, limit: int = EXCERPT_LIMIT) -> str:
    text = WHITESPACE_RE.sub(" ", _plain_text(md_text, drop_links=True)).strip()
    if len(text) <= limit:
        return text
    # One extra character tells whether the cut lands right on a word boundary.
    cut = text[: limit + 1]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    else:
        cut = cut[:limit]
    return cut.rstrip() + ELLIPSIS


def parse_date(value: object) -> Optional[dt.datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return as_utc(value)
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return as_utc(dt.datetime.fromisoformat(text.replace("Z", "+00:00")))
    except (OverflowError, ValueError):
        pass
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is not None:
        return as_utc(parsed)
    for fmt in DATE_FORMATS:
        try:
            return as_utc(dt.datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def format_date(value: object) -> DateInfo:
    if value is None or value == "":
        return DateInfo("", UNKNOWN_DATE)
    parsed = parse_date(value)
    if parsed is None:
        return DateInfo("", str(value))
    return DateInfo(iso_date(parsed), f"{parsed:%B} {parsed.day}, {parsed.year}")


def validate_slug(slug: str, source: str) -> str:
    if not slug:
        raise SlugError(f"Empty slug for {source}")
    if slug.startswith("/") or "\\" in slug:
        raise SlugError(f"Slug '{slug}' for {source} must be a relative path")
    if any(part in {"", ".", ".."} for part in slug.split("/")):
        raise SlugError(f"Slug '{slug}' for {source} escapes the output root or has empty segments")
    return slug


def resolve_slug(rel_path: str, override: object = None) -> str:
    if override is not None and str(override).strip():
        slug = str(override).strip()
    else:
        slug = MD_SUFFIX_RE.sub("", PurePosixPath(rel_path).as_posix())
        slug = SLUG_ILLEGAL_RE.sub("-", slug).lower()
    return validate_slug(slug, rel_path)


def path_prefix(slug: str) -> str:
    if not slug:
        return ""
    return "../" * len(slug.split("/"))


def build_post_meta(author: str, minutes: int, date_info: DateInfo) -> str:
    by_line = f"By {html.escape(author)} · " if author else ""
    return (
        '<p class="post-meta">'
        f"{by_line}{minutes} min read · "
        f'<time datetime="{html.escape(date_info.iso)}">{html.escape(date_info.label)}</time>'
        "</p>"
    )


def compile_post(document: Document, default_author: str = "") -> Post:
    meta, body = parse_front_matter(document.text, document.path)
    slug = resolve_slug(document.path, meta.get("slug"))
    minutes, _ = estimate_reading_time(body)
    raw_date = meta.get("date")
    date_info = format_date(raw_date)
    author = str(meta.get("author") or default_author or "")
    body_html = render_markdown(body)
    return Post(
        slug=slug,
        title=extract_title(meta, body),
        author=author,
        date="" if raw_date is None else str(raw_date),
        date_iso=date_info.iso,
        date_label=date_info.label,
        published=parse_date(raw_date),
        html=f"{build_post_meta(author, minutes, date_info)}\n{body_html}",
        minutes=minutes,
        excerpt=make_excerpt(body),
        output_path=f"{slug}/index.html",
        prefix=path_prefix(slug),
        source=document.path,
    )


def collect_posts(posts: list[Post]) -> list[Post]:
    seen = {slug: f"the {slug} page" for slug in RESERVED_SLUGS}
    files = {path: f"the {path} page" for path in AGGREGATE_PATHS}
    for post in posts:
        if post.slug in seen:
            raise DuplicateSlugError(post.slug, seen[post.slug], post.source)
        seen[post.slug] = post.source
        files[post.output_path] = post.source
    # A post directory must not sit where another page writes its file.
    for post in posts:
        if post.slug in files:
            raise SlugError(f"Slug '{post.slug}' for {post.source} clashes with the output file of {files[post.slug]}")
    return list(posts)


def compile_posts(documents: list[Document], default_author: str = "", workers: int = 1) -> list[Post]:
    workers = max(1, int(workers or 1))
    if workers <= 1 or len(documents) <= 1:
        posts = [compile_post(doc, default_author) for doc in documents]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(documents))) as executor:
            posts = list(executor.map(lambda doc: compile_post(doc, default_author), documents))
    return collect_posts(posts)
