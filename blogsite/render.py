from __future__ import annotations

import re
import shutil
from pathlib import Path

from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

from .utils import BuildError

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_TEMPLATES_DIR = PACKAGE_DIR / "templates"
DEFAULT_STATIC_DIR = PACKAGE_DIR / "static"
LAYOUTS = ("base.html", "post.html")


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def render_template(template: str, **context: str) -> str:
    """Fill ``{{name}}`` placeholders from ``context`` in one pass.

    Values are never rescanned, so post bodies that mention ``{{...}}``
    come through untouched. Names missing from ``context`` render blank.
    """

    def repl(match: re.Match) -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_RE.sub(repl, template)


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def load_layouts(templates_dir: Path | None = None) -> dict[str, str]:
    """Read the page layouts, preferring files in ``templates_dir``."""
    layouts = {}
    for name in LAYOUTS:
        candidates = []
        if templates_dir is not None:
            candidates.append(templates_dir / name)
        candidates.append(DEFAULT_TEMPLATES_DIR / name)
        path = next((item for item in candidates if item.is_file()), None)
        if path is None:
            raise BuildError(f"Layout not found: {candidates[0]}")
        layouts[name] = read_template(path)
    return layouts


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> None:
    for item in static_dir.iterdir():
        dest = output_dir / item.name
        if item.is_dir():
            shutil.copytree(item, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(item, dest)


def highlight_css(style: str = "default") -> str:
    try:
        formatter = HtmlFormatter(style=style)
    except ClassNotFound as exc:
        raise BuildError(f"Unknown code style: {style}") from exc
    return formatter.get_style_defs(".codehilite")
