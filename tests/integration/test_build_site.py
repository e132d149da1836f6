"""Integration tests that build a small site end to end through the CLI."""

from pathlib import Path

import pytest

from blogsite.cli import main

SITE_TOML = """
site_name = "Test Notes"
site_description = "Notes for testing."
site_url = "https://notes.example.org"
custom_domain = "notes.example.org"
posts_per_page = 2
footer_text = "Footer line"

[[nav]]
title = "Home"
url = "index.html"

[[nav]]
title = "About"
url = "about.html"

[authors.mara]
name = "Mara Okafor"
role = "Instructor"
bio = "Teaches programming."
"""

POSTS = {
    "first-steps.md": """---
title: First steps
description: Getting started.
date: 2024-01-10
author: mara
tags: [basics]
---

Install the interpreter and open a terminal.
""",
    "loops.md": """---
title: Loops explained
date: 2024-02-10
author: Guest Writer
tags: [basics, python]
---

A loop repeats a block of code. Templates mention {{ name }} literally.

## For loops

```python
for item in range(3):
    print(item)
```
""",
    "functions.md": """---
title: Functions
date: 2024-03-10
tags: [python]
---

A function groups statements under a name.
""",
    "unfinished.md": """---
title: Unfinished thoughts
date: 2024-04-10
draft: true
---

Not ready.
""",
}


@pytest.fixture
def site(tmp_path, monkeypatch):
    """Lay out a project directory and make it the working directory."""
    (tmp_path / "site.toml").write_text(SITE_TOML, encoding="utf-8")
    posts_dir = tmp_path / "posts"
    posts_dir.mkdir()
    for name, text in POSTS.items():
        (posts_dir / name).write_text(text, encoding="utf-8")
    pages_dir = tmp_path / "pages"
    pages_dir.mkdir()
    (pages_dir / "about.md").write_text("---\ntitle: About us\n---\nWho writes here.\n", encoding="utf-8")
    static_dir = tmp_path / "static" / "img"
    static_dir.mkdir(parents=True)
    (static_dir / "logo.svg").write_text("<svg/>", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


class TestBuildSite:
    """Tests for a full build."""

    def test_every_post_renders_title_and_body(self, site):
        """Test that each markdown file becomes a page with its title and text."""
        main(["--quiet"])
        dist = site / "dist"

        first = read(dist / "posts" / "first-steps.html")
        loops = read(dist / "posts" / "loops.html")
        functions = read(dist / "posts" / "functions.html")

        assert "First steps" in first
        assert "Install the interpreter and open a terminal." in first
        assert "Loops explained" in loops
        assert "A loop repeats a block of code." in loops
        assert "Functions" in functions
        assert "A function groups statements under a name." in functions

    def test_drafts_are_skipped(self, site):
        main(["--quiet"])

        assert not (site / "dist" / "posts" / "unfinished.html").exists()
        assert "Unfinished thoughts" not in read(site / "dist" / "index.html")

    def test_drafts_included_on_request(self, site):
        main(["--quiet", "--drafts"])

        assert (site / "dist" / "posts" / "unfinished.html").exists()

    def test_layout_chrome(self, site):
        """Test that nav, footer, author bio and code styling reach the post page."""
        main(["--quiet"])
        page = read(site / "dist" / "posts" / "first-steps.html")

        assert '<a href="../index.html">Home</a>' in page
        assert '<a href="../about.html">About</a>' in page
        assert "Footer line" in page
        assert "Mara Okafor" in page
        assert "Teaches programming." in page
        assert 'href="../css/code.css"' in page

    def test_placeholders_in_content_survive(self, site):
        main(["--quiet"])

        assert "{{ name }}" in read(site / "dist" / "posts" / "loops.html")

    def test_plain_author_name(self, site):
        main(["--quiet"])
        page = read(site / "dist" / "posts" / "loops.html")

        assert "Guest Writer" in page
        assert 'class="codehilite"' in page

    def test_post_without_author_has_no_bio(self, site):
        main(["--quiet"])

        assert 'class="author-bio"' not in read(site / "dist" / "posts" / "functions.html")

    def test_index_pagination_newest_first(self, site):
        main(["--quiet"])
        dist = site / "dist"
        index = read(dist / "index.html")
        page_two = read(dist / "page-2.html")

        assert index.index("Functions") < index.index("Loops explained")
        assert "First steps" not in index
        assert "First steps" in page_two
        assert not (dist / "page-3.html").exists()

    def test_previous_next_links(self, site):
        main(["--quiet"])
        loops = read(site / "dist" / "posts" / "loops.html")

        assert 'href="../posts/first-steps.html" rel="prev"' in loops
        assert 'href="../posts/functions.html" rel="next"' in loops

    def test_tag_pages(self, site):
        main(["--quiet"])
        basics = read(site / "dist" / "tags" / "basics.html")
        python = read(site / "dist" / "tags" / "python.html")

        assert "First steps" in basics
        assert "Loops explained" in basics
        assert "Functions" not in basics
        assert "Functions" in python

    def test_tags_that_slugify_alike_get_separate_pages(self, site):
        (site / "posts" / "alpha.md").write_text("---\ntitle: Alpha\ndate: 2024-05-01\ntags: [C++]\n---\nx\n", encoding="utf-8")
        (site / "posts" / "beta.md").write_text("---\ntitle: Beta\ndate: 2024-05-02\ntags: [C#]\n---\ny\n", encoding="utf-8")

        main(["--quiet"])
        tags_dir = site / "dist" / "tags"
        sharp = read(tags_dir / "c.html")
        plus = read(tags_dir / "c-2.html")

        assert "Beta" in sharp and "Alpha" not in sharp
        assert "Alpha" in plus and "Beta" not in plus
        assert 'href="../tags/c-2.html">C++</a>' in read(site / "dist" / "posts" / "alpha.html")
        assert "https://notes.example.org/tags/c-2.html" in read(site / "dist" / "sitemap.xml")

    def test_archive_and_pages(self, site):
        main(["--quiet"])
        dist = site / "dist"

        archive = read(dist / "archive.html")
        about = read(dist / "about.html")

        assert "2024" in archive
        assert "3 posts" in archive
        assert "About us" in about
        assert "Who writes here." in about
        assert 'class="is-active"' in about

    def test_feeds_and_sitemap(self, site):
        main(["--quiet"])
        dist = site / "dist"

        rss = read(dist / "rss.xml")
        atom = read(dist / "atom.xml")
        sitemap = read(dist / "sitemap.xml")

        assert "<link>https://notes.example.org/posts/functions.html</link>" in rss
        assert "<category>python</category>" in rss
        assert "<name>Mara Okafor</name>" in atom
        assert "https://notes.example.org/about.html" in sitemap
        assert "https://notes.example.org/tags/basics.html" in sitemap
        assert "https://notes.example.org/page-2.html" in sitemap

    def test_feed_limit(self, site):
        main(["--quiet", "--feed-limit", "1"])

        assert read(site / "dist" / "rss.xml").count("<item>") == 1

    def test_static_and_support_files(self, site):
        main(["--quiet"])
        dist = site / "dist"

        assert (dist / "img" / "logo.svg").exists()
        assert (dist / "css" / "site.css").exists()
        assert ".codehilite" in read(dist / "css" / "code.css")
        assert read(dist / "CNAME") == "notes.example.org\n"
        assert (dist / ".nojekyll").exists()
        assert (dist / "404.html").exists()

    def test_optional_outputs_can_be_disabled(self, site):
        main(["--quiet", "--no-enable-rss", "--no-enable-404", "--no-write-nojekyll"])
        dist = site / "dist"

        assert not (dist / "rss.xml").exists()
        assert not (dist / "404.html").exists()
        assert not (dist / ".nojekyll").exists()
        assert (dist / "atom.xml").exists()

    def test_clean_removes_stale_output(self, site):
        stale = site / "dist" / "posts" / "removed.html"
        stale.parent.mkdir(parents=True)
        stale.write_text("old", encoding="utf-8")

        main(["--quiet"])

        assert not stale.exists()

    def test_no_clean_keeps_output(self, site):
        stale = site / "dist" / "posts" / "removed.html"
        stale.parent.mkdir(parents=True)
        stale.write_text("old", encoding="utf-8")

        main(["--quiet", "--no-clean"])

        assert stale.exists()

    def test_stale_notice(self, site):
        main(["--quiet", "--stale-days", "1", "--stale-notice", "Check the date"])

        assert "Check the date" in read(site / "dist" / "posts" / "functions.html")

    def test_custom_templates_override(self, site):
        templates = site / "theme"
        templates.mkdir()
        (templates / "base.html").write_text(
            "<html><title>{{title}}</title><body class=\"custom\">{{content}}</body></html>", encoding="utf-8"
        )

        main(["--quiet", "--templates", "theme"])
        page = read(site / "dist" / "posts" / "functions.html")

        assert 'class="custom"' in page
        assert "A function groups statements under a name." in page

    def test_head_html_snippet(self, site):
        main(["--quiet", "--head-html", "<script src=\"stats.js\"></script>"])

        assert "<script src=\"stats.js\"></script>" in read(site / "dist" / "index.html")

    def test_progress_output(self, site, capsys):
        main([])

        out = capsys.readouterr().out
        assert "Rendered 3 posts, 1 pages and 2 tags." in out
        assert "Site generated in: dist" in out

    def test_missing_site_url_skips_feeds(self, site, capsys):
        config = site / "bare.toml"
        config.write_text('site_name = "Bare"\n', encoding="utf-8")

        main(["--config", "bare.toml"])

        assert not (site / "dist" / "rss.xml").exists()
        assert "No site_url configured" in capsys.readouterr().err


class TestBuildErrors:
    """Tests for authoring mistakes surfacing as exit status 1."""

    def test_malformed_front_matter(self, site, capsys):
        (site / "posts" / "broken.md").write_text("---\ntitle: [oops\n---\nText\n", encoding="utf-8")

        with pytest.raises(SystemExit) as excinfo:
            main(["--quiet"])

        assert excinfo.value.code == 1
        assert "posts/broken.md" in capsys.readouterr().err

    def test_missing_posts_directory(self, site, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["--quiet", "--posts", "nowhere"])

        assert excinfo.value.code == 1
        assert "Posts directory not found" in capsys.readouterr().err

    def test_missing_templates_directory(self, site, capsys):
        with pytest.raises(SystemExit):
            main(["--quiet", "--templates", "nowhere"])

        assert "Templates directory not found" in capsys.readouterr().err

    def test_impossible_date(self, site, capsys):
        (site / "posts" / "leap.md").write_text("---\ndate: 2024-02-30\n---\nText\n", encoding="utf-8")

        with pytest.raises(SystemExit) as excinfo:
            main(["--quiet"])

        assert excinfo.value.code == 1
        assert "Invalid front matter in posts/leap.md" in capsys.readouterr().err

    def test_undecodable_post(self, site, capsys):
        (site / "posts" / "bad.md").write_bytes(b"---\ntitle: Bad\n---\n\xff\xfe\n")

        with pytest.raises(SystemExit) as excinfo:
            main(["--quiet"])

        assert excinfo.value.code == 1
        assert "Cannot read posts/bad.md" in capsys.readouterr().err

    def test_failed_build_leaves_previous_output(self, site):
        main(["--quiet"])
        (site / "posts" / "broken.md").write_text("---\ndate: someday\n---\n", encoding="utf-8")

        with pytest.raises(SystemExit):
            main(["--quiet"])

        assert (site / "dist" / "index.html").exists()
