from __future__ import annotations

import datetime as dt
import html

from .content import ABOUT_PATH, FEED_PATH, HOME_PATH, POSTS_INDEX_PATH, Post
from .render import Templates, compose_page
from .utils import join_url, rfc822_date

SECTION_PREFIX = "../"


def sort_newest_first(posts: list[Post]) -> list[Post]:
    """Newest first; undated posts go last, ordered by slug."""
    ordered = sorted(posts, key=lambda p: p.slug)
    floor = dt.datetime.min.replace(tzinfo=dt.timezone.utc)
    ordered.sort(key=lambda p: (p.published is not None, p.published or floor), reverse=True)
    return ordered


def build_post_cards(posts: list[Post], link_prefix: str) -> str:
    cards = []
    for post in posts:
        meta = f"{html.escape(post.author)} · {post.minutes} min read"
        if post.date:
            meta += f" · {html.escape(post.date)}"
        cards.append(
            '<article class="post-card">'
            f'<div class="meta">{meta}</div>'
            f'<h2><a href="{link_prefix}{post.slug}/">{html.escape(post.title)}</a></h2>'
            f'<p class="excerpt">{html.escape(post.excerpt)}</p>'
            "</article>"
        )
    return "\n".join(cards)


def render_post_page(templates: Templates, post: Post, version: str) -> str:
    return compose_page(
        templates,
        title=post.title,
        content=f'<article class="post">{post.html}</article>',
        prefix=post.prefix,
        version=version,
    )


def render_posts_index(templates: Templates, posts: list[Post], version: str) -> str:
    content = (
        "<h1>All Blog Posts</h1>"
        f'<div class="posts-grid">{build_post_cards(posts, SECTION_PREFIX)}</div>'
    )
    return compose_page(templates, title="All Blog Posts", content=content, prefix=SECTION_PREFIX, version=version)


def render_home(templates: Templates, posts: list[Post], version: str) -> str:
    content = (
        "<h1>All Posts</h1>"
        f'<div class="posts-grid">{build_post_cards(sort_newest_first(posts), "")}</div>'
    )
    return compose_page(templates, title="Home", content=content, prefix="", version=version)


def render_about(templates: Templates, about_html: str, version: str) -> str:
    content = f'<h1>About This Blog</h1><div class="about">{about_html}</div>'
    return compose_page(templates, title="About", content=content, prefix=SECTION_PREFIX, version=version)


def render_feed(posts: list[Post], base_url: str, args: object) -> str:
    base_url = base_url.rstrip("/")
    items = []
    for post in sort_newest_first(posts):
        link = join_url(base_url, f"{post.slug}/")
        lines = [
            "<item>",
            f"<title>{html.escape(post.title)}</title>",
            f"<link>{link}</link>",
            f'<guid isPermaLink="true">{link}</guid>',
            f"<description>{html.escape(post.excerpt)}</description>",
        ]
        if post.published is not None:
            lines.append(f"<pubDate>{rfc822_date(post.published)}</pubDate>")
        lines.append("</item>")
        items.append("\n".join(lines))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(args.site_name)}</title>",
            f"<link>{base_url}/</link>",
            f"<description>{html.escape(args.site_description)}</description>",
            f"<language>{html.escape(getattr(args, 'language', 'en') or 'en')}</language>",
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )


def build_pages(
    templates: Templates, posts: list[Post], args: object, about_html: str, base_url: str, version: str
) -> dict[str, str]:
    """Every output document of one build, keyed by path under the output root.

    ``posts`` must be the complete collection; aggregate pages are only
    generated from it once every post has been compiled.
    """
    pages = {}
    for post in posts:
        pages[post.output_path] = render_post_page(templates, post, version)
    pages[POSTS_INDEX_PATH] = render_posts_index(templates, posts, version)
    pages[HOME_PATH] = render_home(templates, posts, version)
    pages[ABOUT_PATH] = render_about(templates, about_html, version)
    pages[FEED_PATH] = render_feed(posts, base_url, args)
    return pages
