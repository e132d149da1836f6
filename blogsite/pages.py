from __future__ import annotations

import datetime as dt
import html
import math
from pathlib import Path

from . import components
from .content import tag_slugs
from .render import render_template, write_text
from .utils import iso_date, join_url, parse_bool, rfc822_date

RESERVED_SLUGS = {"index", "archive", "404"}


def feed_links(args: object, root: str) -> str:
    links = []
    if (getattr(args, "site_url", "") or "").strip():
        if getattr(args, "enable_rss", True):
            links.append(f'<link rel="alternate" type="application/rss+xml" title="RSS" href="{root}/rss.xml" />')
        if getattr(args, "enable_atom", True):
            links.append(f'<link rel="alternate" type="application/atom+xml" title="Atom" href="{root}/atom.xml" />')
    return "\n  ".join(links)


def render_page(
    layouts: dict,
    args: object,
    root: str,
    title: str,
    content: str,
    sidebar: str,
    active: str = "",
    description: str = "",
) -> str:
    """Wrap a page body in the base layout with the shared site chrome."""
    nav_links = getattr(args, "nav_links", None) or []
    return render_template(
        layouts["base.html"],
        lang=html.escape(getattr(args, "lang", "en") or "en"),
        title=html.escape(title),
        description=html.escape(description or args.site_description),
        root=root,
        site_name=html.escape(args.site_name),
        site_description=html.escape(args.site_description),
        nav=components.nav_bar(nav_links, root, active),
        content=content,
        sidebar=sidebar,
        footer=components.footer(args.site_name, dt.datetime.now().year, getattr(args, "footer_text", ""), root=root),
        feed_links=feed_links(args, root),
        extra_head=getattr(args, "head_html", "") or "",
    )


def build_index(
    layouts: dict,
    output_dir: Path,
    posts: list[dict],
    tag_map: dict,
    args: object,
    about_html: str,
) -> int:
    root = "."
    slugs = tag_slugs(tag_map)
    side = components.sidebar(tag_map, root, about_html)
    per_page = max(1, int(getattr(args, "posts_per_page", 8)))
    total_pages = max(1, math.ceil(len(posts) / per_page))

    for page in range(1, total_pages + 1):
        start = (page - 1) * per_page
        page_posts = posts[start : start + per_page]
        content = (
            '<div class="section-head">'
            "<h2>Latest posts</h2>"
            f"<p>{html.escape(args.site_description)}</p>"
            "</div>"
            f'<div class="post-grid">{components.post_cards(page_posts, root, slugs)}</div>'
            f"{components.pagination(page, total_pages)}"
        )
        page_title = f"{args.site_name} | Home"
        if page > 1:
            page_title = f"{args.site_name} | Page {page}"
        html_doc = render_page(layouts, args, root, page_title, content, side, active="index.html")
        write_text(output_dir / components.page_url(page), html_doc)

    return total_pages


def stale_notice(post: dict, args: object) -> str:
    notice = (getattr(args, "stale_notice", "") or "").strip()
    stale_days = max(0, int(getattr(args, "stale_days", 0) or 0))
    if not notice or stale_days <= 0:
        return ""
    now = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    if now - post["updated_dt"] > dt.timedelta(days=stale_days):
        return f'<div class="stale-warning">{html.escape(notice)}</div>'
    return ""


def build_posts(
    layouts: dict,
    output_dir: Path,
    posts: list[dict],
    tag_map: dict,
    args: object,
    about_html: str,
) -> None:
    root = ".."
    show_updated = parse_bool(getattr(args, "show_updated", True))
    slugs = tag_slugs(tag_map)
    for idx, post in enumerate(posts):
        newer = posts[idx - 1] if idx > 0 else None
        older = posts[idx + 1] if idx + 1 < len(posts) else None
        article = render_template(
            layouts["post.html"],
            root=root,
            title=html.escape(post["title"]),
            meta=components.post_meta(post, show_updated),
            tags=components.tag_chips(post["tags"], root, slugs),
            notice=stale_notice(post, args),
            body=post["content"],
            author=components.author_bio(post["author"], root),
            post_nav=components.post_nav(newer, older, root),
        )
        side = components.sidebar(tag_map, root, about_html, post.get("toc", ""))
        html_doc = render_page(
            layouts,
            args,
            root,
            f"{post['title']} | {args.site_name}",
            article,
            side,
            description=post["summary"],
        )
        write_text(output_dir / "posts" / f"{post['slug']}.html", html_doc)


def build_tags(
    layouts: dict,
    output_dir: Path,
    tag_map: dict,
    args: object,
    about_html: str,
) -> None:
    root = ".."
    slugs = tag_slugs(tag_map)
    side = components.sidebar(tag_map, root, about_html)
    for tag, posts in sorted(tag_map.items(), key=lambda x: x[0].lower()):
        count = len(posts)
        content = (
            '<div class="section-head">'
            f"<h2>{html.escape(tag)}</h2>"
            f"<p>{count} post{'s' if count != 1 else ''} tagged with this topic.</p>"
            "</div>"
            f'<div class="post-grid">{components.post_cards(posts, root, slugs)}</div>'
        )
        html_doc = render_page(layouts, args, root, f"{tag} | {args.site_name}", content, side)
        write_text(output_dir / "tags" / f"{slugs[tag]}.html", html_doc)


def build_archive(
    layouts: dict,
    output_dir: Path,
    posts: list[dict],
    tag_map: dict,
    args: object,
    about_html: str,
) -> None:
    root = "."
    side = components.sidebar(tag_map, root, about_html)
    year_groups: dict[int, list[dict]] = {}
    for post in posts:
        year_groups.setdefault(post["date_dt"].year, []).append(post)

    sections = []
    for year, items in sorted(year_groups.items(), key=lambda x: x[0], reverse=True):
        rows = []
        for item in items:
            rows.append(
                f'<li><span class="archive-date">{item["date"]}</span>'
                f'<a href="{root}/posts/{item["slug"]}.html">{html.escape(item["title"])}</a></li>'
            )
        sections.append(
            f'<section class="archive-group"><h3>{year} <span class="archive-count">{len(items)}</span></h3>'
            f'<ul class="archive-list">{"".join(rows)}</ul></section>'
        )
    if not sections:
        sections.append('<p class="archive-empty">No posts yet.</p>')

    total_words = sum(post.get("words", 0) for post in posts)
    content = (
        '<div class="section-head">'
        "<h2>Archive</h2>"
        f"<p>{len(posts)} posts, {total_words} words.</p>"
        "</div>"
        f'{"".join(sections)}'
    )
    html_doc = render_page(layouts, args, root, f"Archive | {args.site_name}", content, side, active="archive.html")
    write_text(output_dir / "archive.html", html_doc)


def build_pages(
    layouts: dict,
    output_dir: Path,
    pages: list[dict],
    tag_map: dict,
    args: object,
    about_html: str,
) -> None:
    root = "."
    for page in pages:
        article = render_template(
            layouts["post.html"],
            root=root,
            title=html.escape(page["title"]),
            body=page["content"],
            author=components.author_bio(page["author"], root),
        )
        side = components.sidebar(tag_map, root, about_html, page.get("toc", ""))
        filename = f"{page['slug']}.html"
        html_doc = render_page(
            layouts,
            args,
            root,
            f"{page['title']} | {args.site_name}",
            article,
            side,
            active=filename,
            description=page["summary"],
        )
        write_text(output_dir / filename, html_doc)


def build_404(
    layouts: dict,
    output_dir: Path,
    tag_map: dict,
    args: object,
    about_html: str,
) -> None:
    root = "."
    side = components.sidebar(tag_map, root, about_html)
    content = (
        '<div class="section-head">'
        "<h2>404</h2>"
        "<p>Page not found. Try heading back to the homepage.</p>"
        "</div>"
        '<div class="post-card">'
        '<p class="post-summary">The page you requested does not exist.</p>'
        f'<a class="post-more" href="{root}/index.html">Back to home</a>'
        "</div>"
    )
    html_doc = render_page(layouts, args, root, f"404 | {args.site_name}", content, side)
    write_text(output_dir / "404.html", html_doc)


def build_rss(output_dir: Path, posts: list[dict], site_url: str, args: object, feed_limit: int) -> None:
    if not site_url:
        return
    site_url = site_url.rstrip("/")
    items = []
    for post in posts[:feed_limit]:
        link = join_url(site_url, f"posts/{post['slug']}.html")
        lines = [
            "<item>",
            f"<title>{html.escape(post['title'])}</title>",
            f"<link>{link}</link>",
            f"<guid>{link}</guid>",
            f"<pubDate>{rfc822_date(post['date_dt'])}</pubDate>",
            f"<description>{html.escape(post['summary'])}</description>",
        ]
        lines.extend(f"<category>{html.escape(tag)}</category>" for tag in post["tags"])
        lines.append("</item>")
        items.append("\n".join(lines))
    last_build = rfc822_date(posts[0]["date_dt"]) if posts else rfc822_date(dt.datetime.now(dt.timezone.utc).replace(tzinfo=None))
    rss = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(args.site_name)}</title>",
            f"<link>{site_url}/</link>",
            f"<description>{html.escape(args.site_description)}</description>",
            f"<lastBuildDate>{last_build}</lastBuildDate>",
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )
    write_text(output_dir / "rss.xml", rss)


def build_atom(output_dir: Path, posts: list[dict], site_url: str, args: object, feed_limit: int) -> None:
    if not site_url:
        return
    site_url = site_url.rstrip("/")
    if posts:
        updated = iso_date(max(post["updated_dt"] for post in posts))
    else:
        updated = iso_date(dt.datetime.now(dt.timezone.utc).replace(tzinfo=None))
    entries = []
    for post in posts[:feed_limit]:
        link = join_url(site_url, f"posts/{post['slug']}.html")
        lines = [
            "<entry>",
            f"<title>{html.escape(post['title'])}</title>",
            f'<link href="{link}" />',
            f"<id>{link}</id>",
            f"<published>{iso_date(post['date_dt'])}</published>",
            f"<updated>{iso_date(post['updated_dt'])}</updated>",
        ]
        author_name = post["author"].get("name", "")
        if author_name:
            lines.append(f"<author><name>{html.escape(author_name)}</name></author>")
        lines.append(f"<summary>{html.escape(post['summary'])}</summary>")
        lines.append("</entry>")
        entries.append("\n".join(lines))
    atom = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(args.site_name)}</title>",
            f"<id>{site_url}/</id>",
            f"<updated>{updated}</updated>",
            f'<link href="{site_url}/atom.xml" rel="self" />',
            f'<link href="{site_url}/" />',
            "\n".join(entries),
            "</feed>",
        ]
    )
    write_text(output_dir / "atom.xml", atom)


def build_sitemap(
    output_dir: Path,
    posts: list[dict],
    pages: list[dict],
    tag_map: dict,
    site_url: str,
    total_pages: int,
) -> None:
    if not site_url:
        return
    site_url = site_url.rstrip("/")
    urls = [
        (site_url + "/", posts[0]["updated_dt"] if posts else None),
        (join_url(site_url, "archive.html"), None),
    ]
    for page in range(2, total_pages + 1):
        urls.append((join_url(site_url, components.page_url(page)), None))
    for page in pages:
        urls.append((join_url(site_url, f"{page['slug']}.html"), page["updated_dt"]))
    for post in posts:
        urls.append((join_url(site_url, f"posts/{post['slug']}.html"), post["updated_dt"]))
    for slug in sorted(tag_slugs(tag_map).values()):
        urls.append((join_url(site_url, f"tags/{slug}.html"), None))
    items = []
    for url, lastmod in urls:
        lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
        if lastmod:
            lines.append(f"<lastmod>{lastmod.date().isoformat()}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    write_text(output_dir / "sitemap.xml", sitemap)
