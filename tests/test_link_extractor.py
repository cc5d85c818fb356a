import pytest

from distcrawl.crawler.link_extractor import extract_links

BASE = "https://a.test/dir/page.html"


def test_relative_and_absolute_links_resolved():
    html = '<a href="other.html">o</a><a href="/root">r</a><a href="https://b.test/x">b</a>'
    assert extract_links(html, BASE) == {
        "https://a.test/dir/other.html",
        "https://a.test/root",
        "https://b.test/x",
    }


@pytest.mark.parametrize(
    "href",
    ["", "   ", "mailto:me@a.test", "javascript:void(0)", "tel:+123", "ftp://a.test/file"],
)
def test_unusable_hrefs_dropped(href):
    assert extract_links(f'<a href="{href}">x</a>', BASE) == set()


def test_fragments_stripped_and_deduplicated():
    html = '<a href="/x#one">1</a><a href="/x#two">2</a><a href="/x">3</a>'
    assert extract_links(html, BASE) == {"https://a.test/x"}


def test_accepts_bytes_and_ignores_anchors_without_href():
    html = b'<a name="top">no href</a><a href="/y">y</a><link href="/style.css">'
    assert extract_links(html, BASE) == {"https://a.test/y"}
