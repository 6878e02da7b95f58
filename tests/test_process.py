"""Tests for lawcrawler.process module (BFS crawl driver)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lawcrawler.config import CrawlOptions
from lawcrawler.process import FetchExhaustedError, TitleLookup, process_law_graph
from lawcrawler.registry import Registry, make_entry, make_fallback_entry


def _options(tmp_path: Path, **overrides) -> CrawlOptions:
    values = dict(
        max_depth=1,
        retry=1,
        output_dir=str(tmp_path / "laws"),
        dictionary_path=str(tmp_path / "data" / "dict.json"),
        unresolved_path=str(tmp_path / "data" / "unresolved.json"),
    )
    values.update(overrides)
    return CrawlOptions(**values)


def _scraper(docs: dict, calls: list):
    async def scrape(law_id: str):
        calls.append(law_id)
        return docs[law_id]

    return scrape


def _read_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


@pytest.fixture
def graph(make_doc):
    return {
        "A": make_doc("A", "Alpha", ("B", "/law/B"), ("C", "/law/C#P1")),
        "B": make_doc("B", "Beta", ("D", "/law/D"), ("A", "/law/A")),
        "C": make_doc("C", "Gamma"),
        "D": make_doc("D", "Delta"),
    }


class TestBreadthFirstCrawl:
    @pytest.mark.asyncio
    async def test_visits_in_bfs_order_within_depth(self, tmp_path, graph, no_sleep):
        options = _options(tmp_path)
        registry = Registry()
        calls: list = []

        summary = await process_law_graph(
            options, "A", "Alpha", registry, scraper=_scraper(graph, calls), sleep=no_sleep
        )

        assert calls == ["A", "B", "C"]
        assert summary.fetched == ["A", "B", "C"]
        assert summary.skipped == []
        laws = tmp_path / "laws"
        assert sorted(p.name for p in laws.iterdir()) == [
            "Alpha_A.md",
            "Beta_B.md",
            "Gamma_C.md",
        ]
        # D is beyond the depth limit: linked but never fetched.
        assert registry.get("D").file_name == "law_D.md"
        beta = (laws / "Beta_B.md").read_text(encoding="utf-8")
        assert "[[laws/law_D.md|D]]" in beta

    @pytest.mark.asyncio
    async def test_persists_registry_and_log(self, tmp_path, graph, no_sleep):
        options = _options(tmp_path)
        summary = await process_law_graph(
            options, "A", "Alpha", Registry(), scraper=_scraper(graph, []), sleep=no_sleep
        )

        saved = _read_json(options.dictionary_path)
        assert saved["A"]["file_name"] == "Alpha_A.md"
        assert saved["B"]["file_name"] == "Beta_B.md"
        assert saved["C"]["title"] == "Gamma"
        assert saved["D"]["file_name"] == "law_D.md"

        log = _read_json(options.unresolved_path)
        assert [(r["href"], r["reason"]) for r in log] == [
            ("/law/B", "target_not_built"),
            ("/law/C#P1", "target_not_built"),
            ("/law/D", "target_not_built"),
            ("/law/A", "depth_limit"),
        ]
        assert all(r["root_law_id"] == "A" for r in log)
        assert len(summary.unresolved) == 4

    @pytest.mark.asyncio
    async def test_repeated_runs_keep_log_idempotent(self, tmp_path, graph, no_sleep):
        options = _options(tmp_path)
        await process_law_graph(
            options, "A", "Alpha", Registry(), scraper=_scraper(graph, []), sleep=no_sleep
        )
        first = _read_json(options.unresolved_path)
        await process_law_graph(
            options,
            "A",
            "Alpha",
            Registry.load(options.dictionary_path),
            scraper=_scraper(graph, []),
            sleep=no_sleep,
        )
        second = _read_json(options.unresolved_path)
        assert [r["href"] for r in second] == [r["href"] for r in first]

    @pytest.mark.asyncio
    async def test_cycles_are_visited_once(self, tmp_path, graph, no_sleep):
        calls: list = []
        summary = await process_law_graph(
            _options(tmp_path, max_depth=3),
            "A",
            "Alpha",
            Registry(),
            scraper=_scraper(graph, calls),
            sleep=no_sleep,
        )
        assert calls == ["A", "B", "C", "D"]
        assert "A" in summary.dropped

    @pytest.mark.asyncio
    async def test_depth_zero_fetches_root_only(self, tmp_path, graph, no_sleep):
        calls: list = []
        registry = Registry()
        await process_law_graph(
            _options(tmp_path, max_depth=0),
            "A",
            "Alpha",
            registry,
            scraper=_scraper(graph, calls),
            sleep=no_sleep,
        )
        assert calls == ["A"]
        note = (tmp_path / "laws" / "Alpha_A.md").read_text(encoding="utf-8")
        assert "[[laws/law_B.md|B]]" in note
        assert "[[laws/law_C.md#P1|C]]" in note

    @pytest.mark.asyncio
    async def test_fallback_root_hint_uses_fallback_entry(self, tmp_path, make_doc, no_sleep):
        docs = {"A": make_doc("A", "Alpha")}
        registry = Registry()
        seen_entries = []

        async def scrape(law_id):
            seen_entries.append(registry.get(law_id).file_name)
            return docs[law_id]

        await process_law_graph(
            _options(tmp_path), "A", "law_A", registry, scraper=scrape, sleep=no_sleep
        )
        assert seen_entries == ["law_A.md"]
        assert registry.get("A").file_name == "Alpha_A.md"


class TestSkipExisting:
    @pytest.mark.asyncio
    async def test_existing_note_is_reused_and_its_edges_followed(
        self, tmp_path, graph, no_sleep
    ):
        laws = tmp_path / "laws"
        laws.mkdir()
        (laws / "Alpha_A.md").write_text(
            "[[laws/law_B.md|B]] and [[laws/Gamma_C.md#P1|C]]", encoding="utf-8"
        )
        calls: list = []

        summary = await process_law_graph(
            _options(tmp_path, if_exists="skip"),
            "A",
            "Alpha",
            Registry(),
            scraper=_scraper(graph, calls),
            sleep=no_sleep,
        )

        assert calls == ["B", "C"]
        assert summary.skipped == ["A"]
        assert summary.fetched == ["B", "C"]
        # Skipped note is left untouched.
        assert (laws / "Alpha_A.md").read_text(encoding="utf-8").startswith("[[laws/law_B.md")

    @pytest.mark.asyncio
    async def test_registry_file_name_reconciled_with_found_note(
        self, tmp_path, make_doc, no_sleep
    ):
        laws = tmp_path / "laws"
        laws.mkdir()
        (laws / "特許法_A.md").write_text("no links", encoding="utf-8")
        registry = Registry({"A": make_entry("A", "Alpha")})
        calls: list = []

        await process_law_graph(
            _options(tmp_path, if_exists="skip"),
            "A",
            "Alpha",
            registry,
            scraper=_scraper({}, calls),
            sleep=no_sleep,
        )

        assert calls == []
        assert registry.get("A").file_name == "特許法_A.md"
        saved = _read_json(str(tmp_path / "data" / "dict.json"))
        assert saved["A"]["file_name"] == "特許法_A.md"

    @pytest.mark.asyncio
    async def test_scanned_edges_beyond_depth_are_dropped(self, tmp_path, no_sleep):
        laws = tmp_path / "laws"
        laws.mkdir()
        (laws / "Alpha_A.md").write_text("[[laws/law_B.md|B]]", encoding="utf-8")
        calls: list = []

        summary = await process_law_graph(
            _options(tmp_path, if_exists="skip", max_depth=0),
            "A",
            "Alpha",
            Registry(),
            scraper=_scraper({}, calls),
            sleep=no_sleep,
        )
        assert calls == []
        assert summary.dropped == ["B"]

    @pytest.mark.asyncio
    async def test_overwrite_mode_refetches(self, tmp_path, graph, no_sleep):
        laws = tmp_path / "laws"
        laws.mkdir()
        (laws / "Alpha_A.md").write_text("stale", encoding="utf-8")
        calls: list = []
        await process_law_graph(
            _options(tmp_path, max_depth=0),
            "A",
            "Alpha",
            Registry(),
            scraper=_scraper(graph, calls),
            sleep=no_sleep,
        )
        assert calls == ["A"]
        assert (laws / "Alpha_A.md").read_text(encoding="utf-8").startswith("---\nlaw_id: A")


class TestRenamedNotes:
    @pytest.mark.asyncio
    async def test_stale_file_removed_when_title_changes(self, tmp_path, graph, no_sleep):
        laws = tmp_path / "laws"
        laws.mkdir()
        (laws / "law_A.md").write_text("old placeholder", encoding="utf-8")
        registry = Registry({"A": make_fallback_entry("A")})

        await process_law_graph(
            _options(tmp_path, max_depth=0),
            "A",
            "Alpha",
            registry,
            scraper=_scraper(graph, []),
            sleep=no_sleep,
        )

        assert not (laws / "law_A.md").exists()
        assert (laws / "Alpha_A.md").exists()
        assert registry.get("A").file_name == "Alpha_A.md"


class TestTitleAutoUpdate:
    @pytest.mark.asyncio
    async def test_lookup_success_and_failure(self, tmp_path, graph, no_sleep):
        lookups: list = []

        async def lookup(law_id):
            lookups.append(law_id)
            if law_id == "C":
                raise OSError("api down")
            return "Beta (official)"

        registry = Registry()
        summary = await process_law_graph(
            _options(tmp_path, max_depth=0, retry=2, dictionary_autoupdate=True),
            "A",
            "Alpha",
            registry,
            scraper=_scraper(graph, []),
            title_lookup=lookup,
            sleep=no_sleep,
        )

        assert lookups == ["B", "C", "C"]
        assert registry.get("B").file_name == "Beta (official)_B.md"
        assert registry.get("C").file_name == "law_C.md"
        note = (tmp_path / "laws" / "Alpha_A.md").read_text(encoding="utf-8")
        assert "[[laws/Beta (official)_B.md|B]]" in note
        # Only the still-unresolved target is logged as not built.
        assert [(r.href, r.reason) for r in summary.unresolved] == [
            ("/law/B", "depth_limit"),
            ("/law/C#P1", "target_not_built"),
        ]

    @pytest.mark.asyncio
    async def test_lookup_returning_none_falls_back(self, tmp_path, graph, no_sleep):
        async def lookup(law_id):
            return None

        registry = Registry()
        await process_law_graph(
            _options(tmp_path, max_depth=0, dictionary_autoupdate=True),
            "A",
            "Alpha",
            registry,
            scraper=_scraper(graph, []),
            title_lookup=lookup,
            sleep=no_sleep,
        )
        assert registry.get("B").file_name == "law_B.md"

    @pytest.mark.asyncio
    async def test_lookup_not_called_when_disabled(self, tmp_path, graph, no_sleep):
        async def lookup(law_id):
            raise AssertionError("lookup must not run")

        registry = Registry({"C": make_entry("C", "Gamma")})
        await process_law_graph(
            _options(tmp_path, max_depth=0),
            "A",
            "Alpha",
            registry,
            scraper=_scraper(graph, []),
            title_lookup=lookup,
            sleep=no_sleep,
        )
        assert registry.get("B").file_name == "law_B.md"
        assert registry.get("C").file_name == "Gamma_C.md"


class TestTitleLookupResult:
    def test_ok_requires_title_and_no_error(self):
        assert TitleLookup(title="x").ok
        assert not TitleLookup().ok
        assert not TitleLookup(error=RuntimeError("x")).ok


class TestFetchFailure:
    @pytest.mark.asyncio
    async def test_exhausted_retries_abort_run(self, tmp_path, no_sleep):
        calls: list = []

        async def scrape(law_id):
            calls.append(law_id)
            raise OSError(f"timeout {len(calls)}")

        with pytest.raises(FetchExhaustedError) as excinfo:
            await process_law_graph(
                _options(tmp_path, retry=3),
                "A",
                "Alpha",
                Registry(),
                scraper=scrape,
                sleep=no_sleep,
            )

        assert excinfo.value.law_id == "A"
        assert isinstance(excinfo.value.__cause__, OSError)
        assert str(excinfo.value.__cause__) == "timeout 3"
        assert calls == ["A", "A", "A"]
        assert no_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_partial_progress_is_kept(self, tmp_path, graph, no_sleep):
        async def scrape(law_id):
            if law_id == "B":
                raise OSError("down")
            return graph[law_id]

        options = _options(tmp_path)
        with pytest.raises(FetchExhaustedError):
            await process_law_graph(
                options, "A", "Alpha", Registry(), scraper=scrape, sleep=no_sleep
            )

        assert (tmp_path / "laws" / "Alpha_A.md").exists()
        saved = _read_json(options.dictionary_path)
        assert set(saved) >= {"A", "B", "C"}
        assert not Path(options.unresolved_path).exists()

    @pytest.mark.asyncio
    async def test_invalid_options_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            await process_law_graph(_options(tmp_path, retry=0), "A", "Alpha", Registry())
