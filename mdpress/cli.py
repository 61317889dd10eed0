from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path

from .config import load_config, resolve_about_html, resolve_site_url
from .content import AGGREGATE_PATHS, compile_posts, read_document
from .errors import BuildError
from .pages import build_pages
from .render import copy_static, load_templates, write_text
from .utils import clean_output_dir, parse_bool, parse_int


def build_version() -> str:
    return str(int(time.time() * 1000))


def resolve_workers(value: object) -> int:
    workers = parse_int(value, 0)
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, 32))


def build_site(args: argparse.Namespace, project_root: Path | None = None) -> dict[str, str]:
    """Run the whole pipeline once and return the generated pages by path."""
    project_root = project_root or Path.cwd()
    posts_dir = Path(args.posts)
    templates_dir = Path(args.templates)
    static_dir = Path(args.static)
    output_dir = Path(args.output)

    if not posts_dir.is_dir():
        raise BuildError(f"Posts directory not found: {posts_dir}")
    if not templates_dir.is_dir():
        raise BuildError(f"Templates directory not found: {templates_dir}")

    version = build_version()
    templates = load_templates(templates_dir)
    about_html = resolve_about_html(args)
    base_url = resolve_site_url(args)

    post_files = sorted(posts_dir.rglob("*.md"), key=lambda p: p.as_posix())
    documents = [read_document(path, posts_dir) for path in post_files]
    posts = compile_posts(documents, args.default_author, resolve_workers(args.build_workers))
    print(f"Compiled {len(posts)} posts from {posts_dir}")

    pages = build_pages(templates, posts, args, about_html, base_url, version)

    if parse_bool(args.clean):
        clean_output_dir(output_dir, project_root)
    output_dir.mkdir(parents=True, exist_ok=True)
    if static_dir.is_dir():
        copy_static(static_dir, output_dir)
    for rel_path, text in pages.items():
        write_text(output_dir / rel_path, text)
        if rel_path in AGGREGATE_PATHS:
            print(f"Generated {rel_path}")
    print(f"Wrote {len(pages)} files (version {version}), feed links use {base_url}")
    return pages


def main(argv: list[str] | None = None) -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        default="site.toml",
        help="Path to site config file (TOML/YAML/JSON).",
    )
    pre_args, _ = pre_parser.parse_known_args(argv)
    try:
        config = load_config(Path(pre_args.config))
    except BuildError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        sys.exit(1)

    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        return str(cfg_value(key, default))

    def cfg_bool(key: str, default: bool) -> bool:
        return parse_bool(cfg_value(key, default))

    def cfg_int(key: str, default: int) -> int:
        return parse_int(cfg_value(key, default), default)

    parser = argparse.ArgumentParser(description="Compile a folder of Markdown posts into a static blog.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument(
        "--posts", default=cfg_str("posts", "content/posts"), help="Directory containing Markdown posts."
    )
    parser.add_argument(
        "--templates",
        default=cfg_str("templates", "templates"),
        help="Directory holding layout.html and partials/.",
    )
    parser.add_argument("--static", default=cfg_str("static", "public"), help="Directory containing static assets.")
    parser.add_argument("--output", default=cfg_str("output", "dist"), help="Output directory for the site.")
    parser.add_argument("--site-name", default=cfg_str("site_name", "Markdown Blog"), help="Site title.")
    parser.add_argument(
        "--site-description",
        default=cfg_str("site_description", "Notes written in Markdown."),
        help="Site description used in the feed.",
    )
    parser.add_argument("--language", default=cfg_str("language", "en"), help="Feed language code.")
    parser.add_argument(
        "--default-author",
        default=cfg_str("default_author", "Anonymous"),
        help="Author shown when a post has none.",
    )
    parser.add_argument(
        "--site-url",
        default=cfg_str("site_url", ""),
        help="Public site URL for feed links (the SITE_URL environment variable wins).",
    )
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", True),
        help="Clean output directory before build.",
    )
    parser.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 0),
        type=int,
        help="Number of worker threads for compiling posts (0 = auto).",
    )
    parser.add_argument("--about-text", default=cfg_str("about_text", ""), help="Plain text for the About page.")
    parser.add_argument("--about-html", default=cfg_str("about_html", ""), help="HTML for the About page.")
    parser.add_argument(
        "--about-file",
        default=cfg_str("about_file", ""),
        help="File used for the About page (.md, .html or text).",
    )
    args = parser.parse_args(argv)
    start = time.perf_counter()
    try:
        build_site(args)
    except BuildError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        sys.exit(1)
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {args.output}")
