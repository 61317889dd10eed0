import re
from pathlib import Path

import pytest

from mdpress import cli
from mdpress.config import DEFAULT_SITE_URL, load_config, resolve_about_html, resolve_site_url
from mdpress.errors import BuildError, ConfigError, DuplicateSlugError, FrontMatterError, SlugError, TemplateError


def read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def test_build_site_end_to_end(site_dir, site_args, write_post, monkeypatch):
    monkeypatch.setenv("SITE_URL", "https://blog.example.com")
    write_post("first-post.md", "---\ntitle: First\ndate: 2024-01-15\n---\nHello there.")
    write_post("2024/second.md", "---\ntitle: Second\ndate: 2024-03-02\nauthor: Ada\n---\n# Second\n\nMore words.")

    pages = cli.build_site(site_args, project_root=site_dir)

    output = Path(site_args.output)
    assert (output / "first-post" / "index.html").exists()
    assert (output / "2024" / "second" / "index.html").exists()
    assert (output / "css" / "style.css").exists()
    assert set(pages) >= {"posts/index.html", "index.html", "about/index.html", "feed.xml"}

    home = read(output / "index.html")
    assert home.index('href="2024/second/"') < home.index('href="first-post/"')

    feed = read(output / "feed.xml")
    assert feed.count("<item>") == 2
    links = re.findall(r"<item>.*?<link>(.*?)</link>", feed, re.DOTALL)
    assert sorted(links) == [
        "https://blog.example.com/2024/second/",
        "https://blog.example.com/first-post/",
    ]

    nested = read(output / "2024" / "second" / "index.html")
    assert 'href="../../css/style.css?v=' in nested
    assert '<a href="../../index.html">Home</a>' in nested
    assert "By Ada · 1 min read" in nested

    about = read(output / "about" / "index.html")
    assert "Welcome to <strong>Test Blog</strong>" in about


def test_build_site_reports_each_aggregate_page(site_dir, site_args, write_post, capsys):
    write_post("a.md", "A")

    cli.build_site(site_args, project_root=site_dir)

    out = capsys.readouterr().out
    for path in ("index.html", "posts/index.html", "about/index.html", "feed.xml"):
        assert f"Generated {path}" in out
    assert "Generated a/index.html" not in out


def test_build_site_rejects_slug_on_aggregate_file_before_writing(site_dir, site_args, write_post):
    output = Path(site_args.output)
    output.mkdir()
    (output / "keep.txt").write_text("old build", encoding="utf-8")
    write_post("clash.md", "---\nslug: posts/index.html\n---\nBody")

    with pytest.raises(SlugError, match="posts/index.html"):
        cli.build_site(site_args, project_root=site_dir)

    assert (output / "keep.txt").exists()


def test_build_site_uses_one_version_for_every_page(site_dir, site_args, write_post):
    write_post("a.md", "A")
    write_post("b.md", "B")

    pages = cli.build_site(site_args, project_root=site_dir)

    versions = {
        match
        for path, text in pages.items()
        if path.endswith(".html")
        for match in re.findall(r"style\.css\?v=(\d+)", text)
    }
    assert len(versions) == 1


def test_build_site_fails_on_duplicate_slug(site_dir, site_args, write_post):
    write_post("foo.md", "First")
    write_post("bar.md", "---\nslug: foo\n---\nSecond")

    with pytest.raises(DuplicateSlugError, match="foo"):
        cli.build_site(site_args, project_root=site_dir)

    assert not (Path(site_args.output) / "foo").exists()


def test_build_site_fails_on_malformed_front_matter(site_dir, site_args, write_post):
    write_post("bad.md", "---\ntitle: [oops\n---\nBody")

    with pytest.raises(FrontMatterError, match="bad.md"):
        cli.build_site(site_args, project_root=site_dir)


def test_build_site_fails_without_templates(site_dir, site_args, write_post):
    write_post("a.md", "A")
    (Path(site_args.templates) / "partials" / "footer.html").unlink()

    with pytest.raises(TemplateError, match="footer.html"):
        cli.build_site(site_args, project_root=site_dir)


def test_build_site_requires_posts_dir(site_dir, site_args):
    site_args.posts = str(site_dir / "missing")

    with pytest.raises(BuildError, match="Posts directory not found"):
        cli.build_site(site_args, project_root=site_dir)


def test_main_reports_failures_with_exit_status(site_dir, site_args, write_post, monkeypatch, capsys):
    monkeypatch.chdir(site_dir)
    write_post("foo.md", "First")
    write_post("bar.md", "---\nslug: foo\n---\nSecond")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--posts", site_args.posts, "--templates", site_args.templates, "--output", "dist"])

    assert excinfo.value.code == 1
    assert "Build failed: Duplicate slug 'foo'" in capsys.readouterr().err


def test_main_reads_defaults_from_config(site_dir, site_args, write_post, monkeypatch, capsys):
    monkeypatch.chdir(site_dir)
    monkeypatch.delenv("SITE_URL", raising=False)
    write_post("post.md", "Hello")
    (site_dir / "site.toml").write_text(
        'site_name = "Configured"\n'
        f'posts = "{Path(site_args.posts).as_posix()}"\n'
        f'templates = "{Path(site_args.templates).as_posix()}"\n'
        'output = "public_html"\n'
        'site_url = "https://configured.example"\n',
        encoding="utf-8",
    )

    cli.main([])

    feed = read(site_dir / "public_html" / "feed.xml")
    assert "<title>Configured</title>" in feed
    assert "<link>https://configured.example/post/</link>" in feed
    assert "Build completed in" in capsys.readouterr().out


def test_resolve_site_url_precedence(monkeypatch, site_args):
    monkeypatch.delenv("SITE_URL", raising=False)
    assert resolve_site_url(site_args) == DEFAULT_SITE_URL

    site_args.site_url = "https://configured.example/"
    assert resolve_site_url(site_args) == "https://configured.example"

    monkeypatch.setenv("SITE_URL", "https://env.example")
    assert resolve_site_url(site_args) == "https://env.example"


def test_load_config_formats(tmp_path):
    toml_path = tmp_path / "site.toml"
    toml_path.write_text('site_name = "T"\nbuild_workers = 2\n', encoding="utf-8")
    yaml_path = tmp_path / "site.yaml"
    yaml_path.write_text("site_name: Y\n", encoding="utf-8")
    json_path = tmp_path / "site.json"
    json_path.write_text('{"site_name": "J"}', encoding="utf-8")

    assert load_config(toml_path) == {"site_name": "T", "build_workers": 2}
    assert load_config(yaml_path) == {"site_name": "Y"}
    assert load_config(json_path) == {"site_name": "J"}
    assert load_config(tmp_path / "missing.toml") == {}


def test_load_config_rejects_invalid_files(tmp_path):
    broken = tmp_path / "site.toml"
    broken.write_text("site_name = ", encoding="utf-8")
    listing = tmp_path / "site.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(broken)
    with pytest.raises(ConfigError, match="mapping"):
        load_config(listing)


def test_resolve_about_html_sources(tmp_path, site_args):
    about_md = tmp_path / "about.md"
    about_md.write_text("## Who\n\nMe.", encoding="utf-8")

    site_args.about_file = "about.md"
    assert 'id="who"' in resolve_about_html(site_args)

    site_args.about_text = "Line one\nLine <two>"
    site_args.about_file = ""
    assert resolve_about_html(site_args) == "<p>Line one<br>Line &lt;two&gt;</p>"

    site_args.about_html = "<section>raw</section>"
    assert resolve_about_html(site_args) == "<section>raw</section>"


def test_resolve_about_html_missing_file_is_fatal(site_args):
    site_args.about_file = "nowhere.md"

    with pytest.raises(ConfigError, match="About file not found"):
        resolve_about_html(site_args)
