import argparse
from pathlib import Path

import pytest

from mdpress.render import Templates

LAYOUT = (
    "<html><head><title>{{TITLE}}</title>"
    '<link rel="stylesheet" href="{{PREFIX}}css/style.css?v={{VERSION}}"></head>'
    "<body>{{HEADER}}<main>{{CONTENT}}</main>{{FOOTER}}</body></html>"
)
HEADER = '<header><a href="{{PREFIX}}index.html">Home</a></header>'
FOOTER = '<footer><a href="{{PREFIX}}feed.xml">RSS</a></footer>'


@pytest.fixture
def templates() -> Templates:
    return Templates(layout=LAYOUT, header=HEADER, footer=FOOTER)


@pytest.fixture
def site_args(tmp_path: Path) -> argparse.Namespace:
    return argparse.Namespace(
        config=str(tmp_path / "site.toml"),
        posts=str(tmp_path / "content" / "posts"),
        templates=str(tmp_path / "templates"),
        static=str(tmp_path / "public"),
        output=str(tmp_path / "dist"),
        site_name="Test Blog",
        site_description="Posts & notes",
        language="en",
        default_author="Default Writer",
        site_url="",
        clean=True,
        build_workers=2,
        about_text="",
        about_html="",
        about_file="",
    )


@pytest.fixture
def site_dir(tmp_path: Path, site_args: argparse.Namespace) -> Path:
    templates_dir = Path(site_args.templates)
    (templates_dir / "partials").mkdir(parents=True)
    (templates_dir / "layout.html").write_text(LAYOUT, encoding="utf-8")
    (templates_dir / "partials" / "header.html").write_text(HEADER, encoding="utf-8")
    (templates_dir / "partials" / "footer.html").write_text(FOOTER, encoding="utf-8")
    Path(site_args.posts).mkdir(parents=True)
    static_dir = Path(site_args.static) / "css"
    static_dir.mkdir(parents=True)
    (static_dir / "style.css").write_text("body {}", encoding="utf-8")
    return tmp_path


@pytest.fixture
def write_post(site_dir: Path, site_args: argparse.Namespace):
    def write(rel_path: str, text: str) -> Path:
        path = Path(site_args.posts) / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return write
