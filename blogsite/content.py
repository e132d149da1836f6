from __future__ import annotations

import datetime as dt
import html as html_lib
import math
import re
import sys
from pathlib import Path

import markdown
import yaml

from .render import fix_relative_img_src, strip_tags
from .utils import BuildError, parse_bool

DATE_FMT = "%Y-%m-%d"
SUMMARY_LENGTH = 200
WORDS_PER_MINUTE = 200
AUTHOR_FIELDS = ("name", "role", "bio", "avatar", "url")
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if item is not None]
    else:
        text = str(value).strip()
        if text.startswith("[") and text.endswith("]"):
            text = text[1:-1]
        items = [item.strip().strip("'\"") for item in text.split(",")]
    return [item for item in items if item]


def split_front_matter(text: str) -> tuple[str | None, str]:
    """Split a leading ``---`` delimited block from the body.

    Returns ``(None, text)`` when the file has no front matter or the block
    is never closed.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return None, clean_text
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])
    return None, clean_text


def parse_front_matter(text: str, source: str = "<string>") -> tuple[dict, str]:
    block, body = split_front_matter(text)
    if block is None:
        return {}, body
    try:
        data = yaml.safe_load(block)
    except (yaml.YAMLError, ValueError) as exc:
        raise BuildError(f"Invalid front matter in {source}: {exc}") from exc
    if data is None:
        return {}, body
    if not isinstance(data, dict):
        raise BuildError(f"Front matter must be a mapping: {source}")
    meta = {str(key).strip().lower(): value for key, value in data.items()}
    return meta, body


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    title = meta.get("title")
    if title is not None and str(title).strip():
        return str(title).strip(), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return "Untitled", body


def to_datetime(value: object, source: str) -> dt.datetime | None:
    """Coerce a front matter date value to a naive UTC datetime.

    YAML already turns unquoted ISO dates into ``date``/``datetime``
    objects; quoted strings are parsed with ``fromisoformat``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime.combine(value, dt.time())
    else:
        text = str(value).strip()
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            raise BuildError(f"Invalid date {text!r} in {source}") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed


def get_tags(meta: dict) -> list[str]:
    for key in ("tags", "categories", "category"):
        tags = parse_list(meta.get(key))
        if tags:
            seen = []
            for tag in tags:
                if tag not in seen:
                    seen.append(tag)
            return seen
    return []


def resolve_author(meta: dict, authors: dict) -> dict:
    """Build the author record for a post.

    ``author`` may be a mapping, a key into the configured authors table, or
    a plain display name. Flat ``author_<field>`` keys win over both.
    """
    author = {field: "" for field in AUTHOR_FIELDS}
    value = meta.get("author")
    if isinstance(value, dict):
        source = value
    elif value is not None and str(value).strip() in authors:
        source = authors[str(value).strip()]
        if not isinstance(source, dict):
            source = {"name": source}
    elif value is not None:
        source = {"name": value}
    else:
        source = {}
    for field in AUTHOR_FIELDS:
        item = source.get(field)
        if item is not None:
            author[field] = str(item).strip()
    for field in AUTHOR_FIELDS:
        item = meta.get(f"author_{field}")
        if item is not None:
            author[field] = str(item).strip()
    return author


def normalize_list_spacing(text: str) -> str:
    """Insert the blank line Python-Markdown needs before a top-level list."""
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count


def render_markdown(body: str, toc_depth: str = "2-4") -> tuple[str, str]:
    md = markdown.Markdown(
        extensions=["fenced_code", "tables", "toc", "codehilite"],
        extension_configs={
            "toc": {"toc_depth": toc_depth},
            "codehilite": {"css_class": "codehilite", "guess_lang": False},
        },
    )
    html_content = md.convert(normalize_list_spacing(body))
    toc_html = md.toc
    md.reset()
    return html_content, toc_html


def make_summary(description: str, html_content: str) -> str:
    if description:
        return description
    text = " ".join(strip_tags(html_content).split())
    text = html_lib.unescape(text)
    if len(text) > SUMMARY_LENGTH:
        return text[:SUMMARY_LENGTH].rstrip() + "..."
    return text


def load_post(
    md_file: Path,
    project_root: Path,
    authors: dict | None = None,
    toc_depth: str = "2-4",
    img_root: str = "..",
) -> dict:
    """Read one markdown file into a post record."""
    try:
        rel = md_file.resolve().relative_to(project_root.resolve()).as_posix()
    except ValueError:
        rel = md_file.as_posix()
    try:
        raw_text = md_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(f"Cannot read {rel}: {exc}") from exc
    meta, body = parse_front_matter(raw_text, rel)
    title, body = extract_title(meta, body)

    date_dt = to_datetime(meta.get("date"), rel)
    if date_dt is None:
        mtime = md_file.stat().st_mtime
        date_dt = dt.datetime.fromtimestamp(mtime, dt.timezone.utc).replace(tzinfo=None, microsecond=0)
    updated_dt = to_datetime(meta.get("updated"), rel) or date_dt

    description = meta.get("description")
    if description is None:
        description = meta.get("summary")
    description = "" if description is None else str(description).strip()

    html_content, toc_html = render_markdown(body, toc_depth)
    html_content = fix_relative_img_src(html_content, img_root)
    words = count_words(strip_tags(html_content))
    explicit_slug = str(meta.get("slug") or "").strip()

    return {
        "title": title,
        "description": description,
        "summary": make_summary(description, html_content),
        "date": date_dt.strftime(DATE_FMT),
        "date_dt": date_dt,
        "updated": updated_dt.strftime(DATE_FMT),
        "updated_dt": updated_dt,
        "author": resolve_author(meta, authors or {}),
        "tags": get_tags(meta),
        "draft": parse_bool(meta.get("draft")),
        "slug": slugify(explicit_slug) if explicit_slug else slugify(md_file.stem),
        "content": html_content,
        "toc": toc_html,
        "words": words,
        "reading_minutes": max(1, math.ceil(words / WORDS_PER_MINUTE)),
        "source": rel,
    }


def assign_unique_slugs(records: list[dict], reserved: set[str] | None = None) -> None:
    """Suffix colliding slugs with -2, -3, ... in source path order."""
    used = set(reserved or ())
    for record in sorted(records, key=lambda r: r["source"]):
        base = record["slug"]
        slug = base
        counter = 2
        while slug in used:
            slug = f"{base}-{counter}"
            counter += 1
        if slug != base:
            print(f"Slug {base!r} already taken, using {slug!r} for {record['source']}", file=sys.stderr)
        record["slug"] = slug
        used.add(slug)


def load_posts(
    posts_dir: Path,
    project_root: Path,
    authors: dict | None = None,
    toc_depth: str = "2-4",
    include_drafts: bool = False,
) -> list[dict]:
    """Load every post under ``posts_dir``, newest first."""
    if not posts_dir.exists():
        raise BuildError(f"Posts directory not found: {posts_dir}")
    posts = []
    for md_file in sorted(posts_dir.rglob("*.md"), key=lambda p: p.as_posix()):
        post = load_post(md_file, project_root, authors, toc_depth)
        if post["draft"] and not include_drafts:
            continue
        posts.append(post)
    assign_unique_slugs(posts)
    posts.sort(key=lambda p: p["title"].lower())
    posts.sort(key=lambda p: p["date_dt"], reverse=True)
    return posts


def load_pages(
    pages_dir: Path,
    project_root: Path,
    authors: dict | None = None,
    toc_depth: str = "2-4",
    reserved: set[str] | None = None,
) -> list[dict]:
    """Load standalone pages; they are written at the output root."""
    if not pages_dir.exists():
        return []
    pages = []
    for md_file in sorted(pages_dir.glob("*.md"), key=lambda p: p.as_posix()):
        page = load_post(md_file, project_root, authors, toc_depth, img_root=".")
        if page["draft"]:
            continue
        pages.append(page)
    assign_unique_slugs(pages, reserved)
    return pages


def group_by_tag(posts: list[dict]) -> dict[str, list[dict]]:
    tag_map: dict[str, list[dict]] = {}
    for post in posts:
        for tag in post["tags"]:
            tag_map.setdefault(tag, []).append(post)
    return tag_map


def tag_slugs(tag_map: dict[str, list[dict]]) -> dict[str, str]:
    """Map each tag to the file name of its page.

    Tags that slugify alike (``C++`` and ``C#``, ``Python`` and ``python``)
    get -2, -3, ... in sorted tag order so no tag page overwrites another.
    """
    slugs: dict[str, str] = {}
    used: set[str] = set()
    for tag in sorted(tag_map, key=lambda t: (t.lower(), t)):
        base = slugify(tag)
        slug = base
        counter = 2
        while slug in used:
            slug = f"{base}-{counter}"
            counter += 1
        slugs[tag] = slug
        used.add(slug)
    return slugs
