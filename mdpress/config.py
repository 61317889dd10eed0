from __future__ import annotations

import html
import json
import os
from pathlib import Path

import yaml

from .errors import ConfigError
from .render import render_markdown

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

DEFAULT_SITE_URL = "http://127.0.0.1:3000"
SITE_URL_ENV = "SITE_URL"


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def resolve_site_url(args: object) -> str:
    env_value = os.environ.get(SITE_URL_ENV, "").strip()
    if env_value:
        return env_value.rstrip("/")
    configured = (getattr(args, "site_url", "") or "").strip()
    return (configured or DEFAULT_SITE_URL).rstrip("/")


def resolve_about_html(args: object) -> str:
    html_snippet = (getattr(args, "about_html", "") or "").strip()
    if html_snippet:
        return html_snippet

    file_value = (getattr(args, "about_file", "") or "").strip()
    if file_value:
        path = Path(file_value)
        if not path.is_absolute():
            config_path = Path(getattr(args, "config", "site.toml")).resolve()
            path = config_path.parent / path
        if not path.exists():
            raise ConfigError(f"About file not found: {path}")
        text = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix in {".html", ".htm"}:
            return text
        if suffix == ".md":
            return render_markdown(text)
        escaped = html.escape(text).replace("\n", "<br>")
        return f"<p>{escaped}</p>"

    text_value = (getattr(args, "about_text", "") or "").strip()
    if text_value:
        escaped = html.escape(text_value).replace("\n", "<br>")
        return f"<p>{escaped}</p>"

    site_name = html.escape(getattr(args, "site_name", ""))
    site_description = html.escape(getattr(args, "site_description", ""))
    return f"<p>Welcome to <strong>{site_name}</strong>. {site_description}</p>"
