from __future__ import annotations

import argparse
import math
import sys
import time
from pathlib import Path

from .config import load_config, resolve_about_html, resolve_authors, resolve_nav
from .content import group_by_tag, load_pages, load_posts
from .pages import (
    RESERVED_SLUGS,
    build_404,
    build_archive,
    build_atom,
    build_index,
    build_pages,
    build_posts,
    build_rss,
    build_sitemap,
    build_tags,
)
from .render import DEFAULT_STATIC_DIR, copy_static, highlight_css, load_layouts, write_text
from .utils import BuildError, clean_output_dir, parse_bool, parse_int, write_nojekyll

FEED_LIMIT = 20


def build_site(args: argparse.Namespace) -> dict:
    """Render the whole site into ``args.output``.

    Returns counts of what was written so callers can report it.
    """
    project_root = Path.cwd()
    posts_dir = Path(args.posts)
    pages_dir = Path(args.pages)
    static_dir = Path(args.static)
    output_dir = Path(args.output)
    templates_dir = Path(args.templates) if args.templates else None
    quiet = parse_bool(getattr(args, "quiet", False))

    if templates_dir is not None and not templates_dir.exists():
        raise BuildError(f"Templates directory not found: {templates_dir}")
    layouts = load_layouts(templates_dir)
    about_html = resolve_about_html(args)
    authors = getattr(args, "authors", None) or {}

    posts = load_posts(posts_dir, project_root, authors, args.toc_depth, parse_bool(args.drafts))
    tag_map = group_by_tag(posts)
    per_page = max(1, args.posts_per_page)
    total_pages = max(1, math.ceil(len(posts) / per_page))
    reserved = set(RESERVED_SLUGS) | {f"page-{page}" for page in range(2, total_pages + 1)}
    pages = load_pages(pages_dir, project_root, authors, args.toc_depth, reserved)

    if args.clean:
        clean_output_dir(output_dir, project_root)
    output_dir.mkdir(parents=True, exist_ok=True)

    copy_static(DEFAULT_STATIC_DIR, output_dir)
    if static_dir.exists():
        copy_static(static_dir, output_dir)
    write_text(output_dir / "css" / "code.css", highlight_css(args.code_style))

    custom_domain = (args.custom_domain or "").strip()
    if custom_domain:
        write_text(output_dir / "CNAME", f"{custom_domain}\n")
    if args.write_nojekyll:
        write_nojekyll(output_dir)

    site_url = (args.site_url or "").strip()
    if not site_url and custom_domain:
        site_url = f"https://{custom_domain}"
    args.site_url = site_url

    build_index(layouts, output_dir, posts, tag_map, args, about_html)
    build_posts(layouts, output_dir, posts, tag_map, args, about_html)
    build_tags(layouts, output_dir, tag_map, args, about_html)
    build_archive(layouts, output_dir, posts, tag_map, args, about_html)
    build_pages(layouts, output_dir, pages, tag_map, args, about_html)
    if args.enable_404:
        build_404(layouts, output_dir, tag_map, args, about_html)
    if site_url:
        if args.enable_rss:
            build_rss(output_dir, posts, site_url, args, args.feed_limit)
        if args.enable_atom:
            build_atom(output_dir, posts, site_url, args, args.feed_limit)
        if args.enable_sitemap:
            build_sitemap(output_dir, posts, pages, tag_map, site_url, total_pages)
    elif not quiet and (args.enable_rss or args.enable_atom or args.enable_sitemap):
        print("No site_url configured; skipping feeds and sitemap.", file=sys.stderr)

    summary = {"posts": len(posts), "pages": len(pages), "tags": len(tag_map), "index_pages": total_pages}
    if not quiet:
        print(f"Rendered {summary['posts']} posts, {summary['pages']} pages and {summary['tags']} tags.")
    return summary


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        return str(cfg_value(key, default))

    def cfg_bool(key: str, default: bool) -> bool:
        return parse_bool(cfg_value(key, default))

    def cfg_int(key: str, default: int) -> int:
        return parse_int(cfg_value(key, default), default)

    parser = argparse.ArgumentParser(prog="blogsite", description="Build a static blog from Markdown posts.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--posts", default=cfg_str("posts", "posts"), help="Directory containing Markdown posts.")
    parser.add_argument("--pages", default=cfg_str("pages", "pages"), help="Directory containing standalone pages.")
    parser.add_argument("--static", default=cfg_str("static", "static"), help="Directory containing static assets.")
    parser.add_argument(
        "--templates",
        default=cfg_str("templates", ""),
        help="Directory with base.html/post.html overriding the bundled layouts.",
    )
    parser.add_argument("--output", default=cfg_str("output", "dist"), help="Output directory for the site.")
    parser.add_argument("--site-name", default=cfg_str("site_name", "Notes"), help="Site title.")
    parser.add_argument(
        "--site-description",
        default=cfg_str("site_description", "Articles written in Markdown."),
        help="Site description.",
    )
    parser.add_argument("--lang", default=cfg_str("lang", "en"), help="Value of the html lang attribute.")
    parser.add_argument(
        "--site-url",
        default=cfg_str("site_url", ""),
        help="Public site URL used for feeds and sitemap.",
    )
    parser.add_argument(
        "--custom-domain",
        default=cfg_str("custom_domain", ""),
        help="Custom domain to write into CNAME.",
    )
    parser.add_argument("--footer-text", default=cfg_str("footer_text", ""), help="Extra line in the footer.")
    parser.add_argument(
        "--head-html",
        default=cfg_str("head_html", ""),
        help="HTML snippet inserted into every page head (analytics, fonts).",
    )
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", True),
        help="Clean output directory before build.",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("drafts", False),
        help="Include posts marked draft.",
    )
    parser.add_argument(
        "--posts-per-page",
        default=cfg_int("posts_per_page", 8),
        type=int,
        help="Number of posts on the home page before pagination.",
    )
    parser.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of posts in RSS/Atom feeds.",
    )
    parser.add_argument(
        "--toc-depth",
        default=cfg_str("toc_depth", "2-4"),
        help="Heading depth range for TOC (e.g. 2-4).",
    )
    parser.add_argument(
        "--code-style",
        default=cfg_str("code_style", "default"),
        help="Pygments style used for code blocks.",
    )
    parser.add_argument(
        "--show-updated",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("show_updated", True),
        help="Show updated date on post pages.",
    )
    parser.add_argument(
        "--stale-days",
        default=cfg_int("stale_days", 0),
        type=int,
        help="Days before a post is marked as possibly outdated (0 to disable).",
    )
    parser.add_argument(
        "--stale-notice",
        default=cfg_str("stale_notice", "This post may be outdated."),
        help="Notice text for stale posts.",
    )
    parser.add_argument(
        "--about-text",
        default=cfg_str("about_text", ""),
        help="Text content for the sidebar About panel.",
    )
    parser.add_argument(
        "--about-html",
        default=cfg_str("about_html", ""),
        help="HTML content for the sidebar About panel.",
    )
    parser.add_argument(
        "--about-file",
        default=cfg_str("about_file", ""),
        help="Path to file used for the sidebar About panel.",
    )
    for name, help_text in (
        ("rss", "Generate rss.xml."),
        ("atom", "Generate atom.xml."),
        ("sitemap", "Generate sitemap.xml."),
        ("404", "Generate 404.html."),
    ):
        parser.add_argument(
            f"--enable-{name}",
            dest=f"enable_{name}",
            action=argparse.BooleanOptionalAction,
            default=cfg_bool(f"enable_{name}", True),
            help=help_text,
        )
    parser.add_argument(
        "--write-nojekyll",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("write_nojekyll", True),
        help="Write .nojekyll in the output directory.",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors.")
    return parser


def main(argv: list[str] | None = None) -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="site.toml")
    pre_args, _ = pre_parser.parse_known_args(argv)
    try:
        config = load_config(Path(pre_args.config))
        parser = build_parser(config, pre_args.config)
        args = parser.parse_args(argv)
        args.nav_links = resolve_nav(config)
        args.authors = resolve_authors(config)
        start = time.perf_counter()
        build_site(args)
    except BuildError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    elapsed = time.perf_counter() - start
    if not args.quiet:
        print(f"Build completed in {elapsed:.2f}s.")
        print(f"Site generated in: {args.output}")


if __name__ == "__main__":
    main()
