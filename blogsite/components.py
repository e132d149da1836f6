"""Presentational fragments shared by every page.

Each function takes plain data and returns an HTML string. Text that comes
from front matter or config is escaped here; rendered markdown is not.
"""
from __future__ import annotations

import html
from typing import Iterable

from .content import slugify, tag_slugs


def page_url(page: int) -> str:
    if page == 1:
        return "index.html"
    return f"page-{page}.html"


def resolve_link(url: str, root: str) -> str:
    if url.startswith(("http://", "https://", "mailto:", "#", "/")):
        return url
    return f"{root}/{url}"


def nav_bar(links: Iterable[dict], root: str, active: str = "") -> str:
    items = []
    for link in links:
        url = str(link.get("url") or "")
        title = html.escape(str(link.get("title") or url))
        active_class = ' class="is-active" aria-current="page"' if url and url == active else ""
        items.append(f'<li><a href="{html.escape(resolve_link(url, root))}"{active_class}>{title}</a></li>')
    if not items:
        return ""
    return f'<nav class="site-nav"><ul>{"".join(items)}</ul></nav>'


def footer(site_name: str, year: int | str, footer_text: str = "", links: Iterable[dict] = (), root: str = ".") -> str:
    parts = [f'<p class="footer-copy">&copy; {year} {html.escape(site_name)}</p>']
    if footer_text:
        parts.append(f'<p class="footer-text">{html.escape(footer_text)}</p>')
    link_items = [
        f'<a href="{html.escape(resolve_link(str(link.get("url") or ""), root))}">'
        f'{html.escape(str(link.get("title") or ""))}</a>'
        for link in links
    ]
    if link_items:
        parts.append(f'<p class="footer-links">{" ".join(link_items)}</p>')
    return "".join(parts)


def tag_link(tag: str, root: str, slugs: dict | None = None) -> str:
    slug = (slugs or {}).get(tag) or slugify(tag)
    return f"{root}/tags/{slug}.html"


def tag_chips(tags: Iterable[str], root: str, slugs: dict | None = None) -> str:
    return " ".join(
        f'<a class="chip" href="{tag_link(tag, root, slugs)}">{html.escape(tag)}</a>' for tag in tags
    )


def post_meta(post: dict, show_updated: bool = False) -> str:
    parts = [f'<time class="post-date" datetime="{post["date"]}">{post["date"]}</time>']
    if show_updated and post.get("updated") and post["updated"] != post["date"]:
        parts.append(f'<span class="post-updated">Updated {post["updated"]}</span>')
    parts.append(f'<span class="post-reading">{post.get("reading_minutes", 1)} min read</span>')
    author_name = (post.get("author") or {}).get("name", "")
    if author_name:
        parts.append(f'<span class="post-author">{html.escape(author_name)}</span>')
    return f'<div class="post-meta-left">{"".join(parts)}</div>'


def post_card(post: dict, root: str, delay: float = 0.0, slugs: dict | None = None) -> str:
    title = html.escape(post["title"])
    summary = html.escape(post.get("summary", ""))
    url = f"{root}/posts/{post['slug']}.html"
    return (
        f'<article class="post-card" style="animation-delay: {delay:.2f}s">'
        f'<div class="post-meta">{post_meta(post)}'
        f'<div class="post-tags">{tag_chips(post["tags"], root, slugs)}</div></div>'
        f'<h2 class="post-title"><a href="{url}">{title}</a></h2>'
        f'<p class="post-summary">{summary}</p>'
        f'<a class="post-more" href="{url}">Read more</a>'
        "</article>"
    )


def post_cards(posts: list[dict], root: str, slugs: dict | None = None) -> str:
    if not posts:
        return '<p class="empty">No posts yet.</p>'
    return "\n".join(post_card(post, root, min(idx * 0.05, 0.3), slugs) for idx, post in enumerate(posts))


def author_bio(author: dict, root: str) -> str:
    name = (author or {}).get("name", "")
    if not name:
        return ""
    avatar = author.get("avatar", "")
    url = author.get("url", "")
    role = author.get("role", "")
    bio = author.get("bio", "")
    avatar_html = ""
    if avatar:
        avatar_html = (
            f'<img class="author-avatar" src="{html.escape(resolve_link(avatar, root))}" '
            f'alt="{html.escape(name)}" width="64" height="64" />'
        )
    name_html = html.escape(name)
    if url:
        name_html = f'<a href="{html.escape(resolve_link(url, root))}">{name_html}</a>'
    role_html = f'<p class="author-role">{html.escape(role)}</p>' if role else ""
    bio_html = f'<p class="author-bio-text">{html.escape(bio)}</p>' if bio else ""
    return (
        '<aside class="author-bio">'
        f"{avatar_html}"
        '<div class="author-details">'
        f'<p class="author-name">{name_html}</p>'
        f"{role_html}{bio_html}"
        "</div></aside>"
    )


def pagination(page: int, total_pages: int) -> str:
    if total_pages <= 1:
        return ""
    items = []
    if page > 1:
        items.append(f'<a class="page-link" href="./{page_url(page - 1)}" rel="prev">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, total_pages + 1):
        if num == page:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="./{page_url(num)}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page < total_pages:
        items.append(f'<a class="page-link" href="./{page_url(page + 1)}" rel="next">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def post_nav(newer: dict | None, older: dict | None, root: str) -> str:
    if newer is None and older is None:
        return ""
    parts = []
    if older is not None:
        parts.append(
            f'<a class="post-nav-older" href="{root}/posts/{older["slug"]}.html" rel="prev">'
            f'&larr; {html.escape(older["title"])}</a>'
        )
    if newer is not None:
        parts.append(
            f'<a class="post-nav-newer" href="{root}/posts/{newer["slug"]}.html" rel="next">'
            f'{html.escape(newer["title"])} &rarr;</a>'
        )
    return f'<nav class="post-nav">{"".join(parts)}</nav>'


def tag_list(tag_map: dict, root: str) -> str:
    slugs = tag_slugs(tag_map)
    items = []
    for name, posts in sorted(tag_map.items(), key=lambda x: (-len(x[1]), x[0].lower())):
        items.append(
            f'<li><a href="{tag_link(name, root, slugs)}">{html.escape(name)}</a>'
            f'<span class="count">{len(posts)}</span></li>'
        )
    return "\n".join(items) if items else "<li>No tags yet.</li>"


def sidebar(tag_map: dict, root: str, about_html: str, toc_html: str = "") -> str:
    panels = [f'<div class="panel"><h3>About</h3>{about_html}</div>']
    if toc_html and "<li" in toc_html:
        panels.append(f'<div class="panel"><h3>Contents</h3>{toc_html}</div>')
    panels.append(f'<div class="panel"><h3>Tags</h3><ul class="tag-list">{tag_list(tag_map, root)}</ul></div>')
    return "".join(panels)
