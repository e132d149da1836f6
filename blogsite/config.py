from __future__ import annotations

import html
import json
import sys
import tomllib
from pathlib import Path

import markdown
import yaml

from .utils import BuildError

DEFAULT_NAV = [
    {"title": "Home", "url": "index.html"},
    {"title": "Archive", "url": "archive.html"},
]


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(f"Cannot read config file {path}: {exc}") from exc
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise BuildError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except (yaml.YAMLError, ValueError) as exc:
            raise BuildError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise BuildError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise BuildError(f"Config must be a mapping: {path}")
    return data


def resolve_nav(config: dict) -> list[dict]:
    """Navigation links as ``{title, url}`` mappings, in config order."""
    entries = config.get("nav")
    if entries is None:
        return [dict(item) for item in DEFAULT_NAV]
    if not isinstance(entries, list):
        raise BuildError("Config key 'nav' must be a list of {title, url} tables.")
    links = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("url"):
            print(f"Skipping nav entry without a url: {entry!r}", file=sys.stderr)
            continue
        links.append({"title": str(entry.get("title") or entry["url"]), "url": str(entry["url"])})
    return links


def resolve_authors(config: dict) -> dict:
    authors = config.get("authors") or {}
    if not isinstance(authors, dict):
        raise BuildError("Config key 'authors' must be a table keyed by author id.")
    return {str(key): value for key, value in authors.items()}


def resolve_about_html(args: object) -> str:
    """HTML for the sidebar About panel.

    Precedence: ``about_html``, then ``about_file`` (markdown, HTML or plain
    text), then ``about_text``, then the site description.
    """
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
            print(f"About file not found: {path}", file=sys.stderr)
        else:
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise BuildError(f"Cannot read about file {path}: {exc}") from exc
            suffix = path.suffix.lower()
            if suffix in {".html", ".htm"}:
                return text
            if suffix == ".md":
                return markdown.markdown(text, extensions=["fenced_code", "tables"])
            escaped = html.escape(text).replace("\n", "<br>")
            return f"<p>{escaped}</p>"

    text_value = (getattr(args, "about_text", "") or "").strip()
    if text_value:
        escaped = html.escape(text_value).replace("\n", "<br>")
        return f"<p>{escaped}</p>"

    site_description = getattr(args, "site_description", "")
    return f"<p>{html.escape(site_description)}</p>"
