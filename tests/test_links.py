"""Tests for lawcrawler.links module."""

from __future__ import annotations

import pytest

from lawcrawler.links import (
    AnchorHref,
    EmptyHref,
    ExternalHref,
    LawHref,
    UnknownHref,
    classify_href,
    collect_referenced_law_ids,
    parse_law_href,
    scan_referenced_law_ids,
)


class TestParseLawHref:
    def test_relative_url(self):
        assert parse_law_href("/law/334AC0000000121#Mp-At_1") == (
            "334AC0000000121",
            "Mp-At_1",
        )

    def test_absolute_url(self):
        assert parse_law_href("https://laws.e-gov.go.jp/law/345AC0000000082") == (
            "345AC0000000082",
            None,
        )

    def test_trailing_slash(self):
        assert parse_law_href("/law/ABC123/") == ("ABC123", None)

    @pytest.mark.parametrize(
        "href",
        ["https://example.com/x", "/api/2/laws", "https://example.com/law/ABC", "law/ABC"],
    )
    def test_non_law_urls(self, href):
        assert parse_law_href(href) is None


class TestClassifyHref:
    @pytest.mark.parametrize(
        ("href", "expected"),
        [
            ("", EmptyHref()),
            ("   ", EmptyHref()),
            ("#Mp-At_3", AnchorHref(anchor="Mp-At_3")),
            ("/law/X1#P2", LawHref(law_id="X1", anchor="P2")),
            ("http://laws.e-gov.go.jp/law/X1", LawHref(law_id="X1")),
            ("https://example.com/page", ExternalHref(url="https://example.com/page")),
            ("javascript:void(0)", UnknownHref(href="javascript:void(0)")),
            ("/api/2/laws", UnknownHref(href="/api/2/laws")),
        ],
    )
    def test_classification(self, href, expected):
        assert classify_href(href) == expected

    def test_law_site_url_is_law_not_external(self):
        assert isinstance(classify_href("https://laws.e-gov.go.jp/law/X9"), LawHref)


class TestCollectReferencedLawIds:
    def test_distinct_in_order(self, make_doc):
        doc = make_doc(
            "A",
            "Alpha",
            ("B", "/law/B"),
            ("C", "/law/C#x"),
            ("B again", "https://laws.e-gov.go.jp/law/B"),
            ("ext", "https://example.com"),
            ("anchor", "#P1"),
        )
        assert collect_referenced_law_ids(doc) == ["B", "C"]


class TestScanReferencedLawIds:
    def test_extracts_ids_from_wiki_links(self):
        markdown = "\n".join(
            [
                "[[laws/特許法_334AC0000000121.md|特許法]]",
                "[[laws/law_345AC0000000082.md#Mp-At_1|地方道路公社法]]",
                "[[laws/特許法_334AC0000000121.md#TOC|重複]]",
                "[[#Mp-At_2|第二条]]",
                "[external](https://example.com/law/X)",
            ]
        )
        assert scan_referenced_law_ids(markdown) == ["334AC0000000121", "345AC0000000082"]

    def test_empty(self):
        assert scan_referenced_law_ids("") == []
