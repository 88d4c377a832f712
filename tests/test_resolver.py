"""
Tests for TextResolver: depths, fallback languages, caching and file access.
"""

import threading

import pytest

from officium.conditions import EvaluationTrace, OfficeContext
from officium.directives import (
    DataFileError,
    DataFileReader,
    InMemoryReader,
    ResolutionCache,
    ResolveDepth,
    TextResolver,
    resolve_any_version,
)


SCENARIO_FILES = {
    "Latin": {
        "A.txt": "[Foo]\nHello @B:Bar:\n",
        "B.txt": "[Bar]\nWorld\n",
        "Rank.txt": "[Rank]\nDuplex\n[Rank](xyz-never-true)\nAlternate\n",
    },
}

OFFICE_FILES = {
    "Latin": {
        "Commune/C10.txt": (
            "[Rank]\nSimplex;;1\n"
            "[Oratio]\nDeus, qui @:Nomen:s/N\\./Mariæ/\n"
            "[Nomen]\nN.\n"
            "[Lectio1]\nl1\nl2\nl3\nl4\nl5\n"
        ),
        "Sancti/08-05.txt": (
            "@Commune/C10\n"
            "\n"
            "[Rank]\nDuplex majus;;4\n"
            "[Lectio1]\n@Commune/C10::1-3\n"
            "[Lectio2]\n@:Lectio1:2\n"
            "[Versum](rubrica monastica)\nV. Monastic\n"
        ),
    },
}


class TestScenarios:

    def test_guarded_duplicate_is_invisible(self, make_resolver):
        resolver = make_resolver(SCENARIO_FILES)

        assert resolver.section("Latin", "Rank.txt", "Rank") == "Duplex\n"

    def test_cross_file_inclusion(self, make_resolver):
        resolver = make_resolver(SCENARIO_FILES)

        sections = resolver.resolve("Latin", "A.txt", ResolveDepth.ALL)

        assert sections == {"Foo": "Hello World\n"}

    def test_chunk_and_line_scope(self, make_resolver, make_settings, ctx_tridentine):
        files = {"Latin": {"V.txt": "[V]\nfirst\nsecond\n(sed monastica) keep-me\n"}}
        chunk = make_settings({"conditionals": {"implicit_scope": "chunk"}})

        by_line = make_resolver(files, ctx=ctx_tridentine).section("Latin", "V", "V")
        by_chunk = make_resolver(files, ctx=ctx_tridentine, settings=chunk).section("Latin", "V", "V")

        assert by_line == "first\nkeep-me\n"
        assert by_chunk == "keep-me\n"

    def test_leading_fragment_keeps_following_line(self, make_resolver, make_settings,
                                                   ctx_tridentine):
        files = {"Latin": {"V.txt": "[V]\n(sed monastica) keep-me\ndeleted-if-chunk\n"}}
        chunk = make_settings({"conditionals": {"implicit_scope": "chunk"}})

        by_line = make_resolver(files, ctx=ctx_tridentine).section("Latin", "V", "V")
        by_chunk = make_resolver(files, ctx=ctx_tridentine, settings=chunk).section("Latin", "V", "V")

        assert by_line == by_chunk == "keep-me\ndeleted-if-chunk\n"

    def test_missing_file_and_version_fallback(self, make_resolver):
        current = make_resolver(
            {"Latin": {}}, ctx=OfficeContext(version="Rubrics 1960 - 1960")
        )
        older = make_resolver(
            {"Latin": {"Missing/File.txt": "[Rank]\nSimplex\n"}},
            ctx=OfficeContext(version="Tridentine - 1570"),
        )

        assert current.resolve("Latin", "Missing/File.txt", ResolveDepth.ALL) is None
        assert resolve_any_version([current, older], "Latin", "Missing/File.txt") == {
            "Rank": "Simplex\n"
        }

    def test_resolve_any_version_none(self, make_resolver):
        assert resolve_any_version([make_resolver({})], "Latin", "X.txt") is None


class TestDepths:
    """Tests for staged resolution."""

    def test_full_office(self, make_resolver):
        sections = make_resolver(OFFICE_FILES).resolve("Latin", "Sancti/08-05")

        assert sections["Rank"] == "Duplex majus;;4\n"
        assert sections["Oratio"] == "Deus, qui Mariæ\n"
        assert sections["Lectio1"] == "l1\nl2\nl3\n"
        assert sections["Lectio2"] == "l2\n"
        assert sections["~Versum"] == "V. Monastic\n"
        assert "Versum" not in sections
        assert "__preamble" not in sections

    def test_none_depth_keeps_directives(self, make_resolver):
        sections = make_resolver(OFFICE_FILES).resolve("Latin", "Sancti/08-05", ResolveDepth.NONE)

        assert sections["__preamble"] == "@Commune/C10\n\n"
        assert sections["Lectio1"] == "@Commune/C10::1-3\n"
        assert "Oratio" not in sections

    def test_whole_file_depth(self, make_resolver):
        sections = make_resolver(OFFICE_FILES).resolve(
            "Latin", "Sancti/08-05", ResolveDepth.WHOLE_FILE
        )

        assert sections["Oratio"] == "Deus, qui @:Nomen:s/N\\./Mariæ/\n"
        assert sections["Lectio1"] == "@Commune/C10::1-3\n"
        assert sections["Rank"] == "Duplex majus;;4\n"

    def test_staged_equals_one_shot(self, make_resolver):
        staged = make_resolver(OFFICE_FILES)
        shallow = staged.resolve("Latin", "Sancti/08-05", ResolveDepth.NONE)
        expanded = staged.expand(shallow, "Latin", "Sancti/08-05")

        one_shot = make_resolver(OFFICE_FILES).resolve("Latin", "Sancti/08-05")

        assert expanded == one_shot

    def test_staged_through_whole_file(self, make_resolver):
        resolver = make_resolver(OFFICE_FILES)
        whole = resolver.resolve("Latin", "Sancti/08-05", ResolveDepth.WHOLE_FILE)

        expanded = resolver.expand(
            whole, "Latin", "Sancti/08-05", ResolveDepth.WHOLE_FILE, ResolveDepth.ALL
        )

        assert expanded == make_resolver(OFFICE_FILES).resolve("Latin", "Sancti/08-05")

    def test_resolving_twice_is_idempotent(self, make_resolver):
        resolver = make_resolver(OFFICE_FILES)
        first = resolver.resolve("Latin", "Sancti/08-05")

        assert resolver.resolve("Latin", "Sancti/08-05") == first
        assert resolver.expand(first, "Latin", "Sancti/08-05") == first

    def test_inclusion_back_into_file_sees_inherited_sections(self, make_resolver):
        files = {"Latin": {
            "A.txt": "@C\n[Foo]\n@B:X\n",
            "B.txt": "[X]\n@A:Y\n",
            "C.txt": "[Y]\ninherited\n",
        }}

        one_shot = make_resolver(files).resolve("Latin", "A")

        staged = make_resolver(files)
        shallow = staged.resolve("Latin", "A", ResolveDepth.NONE)
        expanded = staged.expand(shallow, "Latin", "A")

        assert one_shot["Foo"] == "inherited\n"
        assert one_shot == expanded

    def test_inheritance_cycle_terminates(self, make_resolver):
        files = {"Latin": {
            "A.txt": "@B\n[Rank]\nA\n",
            "B.txt": "@A\n[Oratio]\nB\n",
        }}

        assert make_resolver(files).resolve("Latin", "A") == {"Rank": "A\n", "Oratio": "B\n"}

    def test_inclusion_cap_from_settings(self, make_resolver, make_settings):
        settings = make_settings({"resolution": {"max_inclusion_passes": 2}})
        files = {"Latin": {"Loop.txt": "[Foo]\n@:Foo\n"}}

        assert make_resolver(files, settings=settings).section("Latin", "Loop", "Foo") == "@:Foo\n"

    def test_resolve_first(self, make_resolver):
        resolver = make_resolver(OFFICE_FILES)

        sections = resolver.resolve_first("Latin", ["Tempora/Pent01-0", "Commune/C10"])

        assert sections["Rank"] == "Simplex;;1\n"
        assert resolver.resolve_first("Latin", ["Tempora/Pent01-0"]) is None


class TestFallbackLanguage:
    """Tests for layering a requested language over its fallback."""

    FILES = {
        "Latin": {"F.txt": "[Rank]\nDuplex\n[Oratio]\nDeus\n[Hymnus]\nTe lucis\n"},
        "English": {"F.txt": "[Oratio]\nO God\n"},
        "Polski": {"F.txt": "[Oratio]\nBoże\n"},
        "Polski-Newer": {"F.txt": "[Hymnus]\nNowy\n"},
    }

    def test_overlay(self, make_resolver):
        sections = make_resolver(self.FILES).resolve("English", "F")

        assert sections == {"Rank": "Duplex\n", "Oratio": "O God\n", "Hymnus": "Te lucis\n"}

    def test_suffix_chain(self, make_resolver):
        sections = make_resolver(self.FILES).resolve("Polski-Newer", "F")

        assert sections == {"Rank": "Duplex\n", "Oratio": "Boże\n", "Hymnus": "Nowy\n"}

    def test_missing_translation_uses_fallback(self, make_resolver):
        sections = make_resolver(self.FILES).resolve("Deutsch", "F")

        assert sections["Oratio"] == "Deus\n"

    def test_missing_everywhere(self, make_resolver):
        assert make_resolver(self.FILES).resolve("English", "G") is None

    def test_inclusion_uses_requested_language(self, make_resolver):
        files = {
            "Latin": {"A.txt": "[Foo]\n@B:Bar\n", "B.txt": "[Bar]\nMundus\n"},
            "English": {"B.txt": "[Bar]\nWorld\n"},
        }

        assert make_resolver(files).section("English", "A", "Foo") == "World\n"
        assert make_resolver(files).section("Latin", "A", "Foo") == "Mundus\n"


class TestResolutionCache:
    """Tests for cache reuse and immutability of entries."""

    def test_results_are_copies(self, make_resolver):
        resolver = make_resolver(SCENARIO_FILES)

        first = resolver.resolve("Latin", "A")
        first["Foo"] = "changed"

        assert resolver.resolve("Latin", "A") == {"Foo": "Hello World\n"}

    def test_deeper_resolution_does_not_mutate_entry(self, make_resolver):
        cache = ResolutionCache()
        resolver = make_resolver(SCENARIO_FILES, cache=cache)
        version = resolver.ctx.version

        resolver.resolve("Latin", "A", ResolveDepth.NONE)
        shallow = cache.get(version, "Latin", "A.txt")
        resolver.resolve("Latin", "A", ResolveDepth.ALL)

        assert shallow.sections == {"Foo": "Hello @B:Bar:\n"}
        assert shallow.depth is ResolveDepth.NONE
        assert cache.get(version, "Latin", "A.txt").depth is ResolveDepth.ALL

    def test_shared_cache_avoids_rereads(self, make_resolver):
        cache = ResolutionCache()
        reader = InMemoryReader(SCENARIO_FILES)

        make_resolver(reader=reader, cache=cache).resolve("Latin", "A")
        reads = len(reader.reads)
        make_resolver(reader=reader, cache=cache).resolve("Latin", "A")

        assert len(reader.reads) == reads
        assert cache.hits > 0

    def test_cache_keyed_by_version(self, make_resolver):
        cache = ResolutionCache()
        reader = InMemoryReader(SCENARIO_FILES)

        make_resolver(reader=reader, cache=cache).resolve("Latin", "B")
        make_resolver(
            reader=reader, cache=cache, ctx=OfficeContext(version="Monastic - 1963")
        ).resolve("Latin", "B")

        assert cache.entries == 2

    def test_put_keeps_deeper_entry(self):
        cache = ResolutionCache()
        cache.put("v", "Latin", "A.txt", {"Foo": "deep"}, ResolveDepth.ALL)

        entry = cache.put("v", "Latin", "A.txt", {"Foo": "raw"}, ResolveDepth.NONE)

        assert entry.sections == {"Foo": "deep"}
        assert entry.depth is ResolveDepth.ALL

    def test_put_copies_sections(self):
        cache = ResolutionCache()
        sections = {"Foo": "x"}

        cache.put("v", "Latin", "A.txt", sections, ResolveDepth.NONE)
        sections["Foo"] = "y"

        assert cache.get("v", "Latin", "A.txt").sections == {"Foo": "x"}

    def test_stats_and_clear(self):
        cache = ResolutionCache()
        cache.get("v", "Latin", "A.txt")
        cache.put("v", "Latin", "A.txt", {}, ResolveDepth.NONE)
        cache.get("v", "Latin", "A.txt")

        assert cache.get_stats()["hits"] == 1
        assert cache.get_stats()["misses"] == 1
        assert cache.entries == 1

        cache.clear()
        assert cache.entries == 0
        assert cache.hits == 0

    def test_counters_exact_across_threads(self):
        cache = ResolutionCache()
        cache.put("v", "Latin", "A.txt", {}, ResolveDepth.NONE)
        languages = ["Latin", "English", "Deutsch", "Polski"]
        rounds = 500
        barrier = threading.Barrier(len(languages))

        def lookups(language):
            barrier.wait()
            for _ in range(rounds):
                cache.get("v", language, "A.txt")

        threads = [threading.Thread(target=lookups, args=(lang,)) for lang in languages]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = cache.get_stats()
        assert stats["hits"] == rounds
        assert stats["misses"] == rounds * (len(languages) - 1)
        assert stats["buckets"] == len(languages)

    def test_concurrent_resolvers_share_one_cache(self, make_resolver):
        cache = ResolutionCache()
        reader = InMemoryReader(OFFICE_FILES)
        expected = make_resolver(OFFICE_FILES).resolve("Latin", "Sancti/08-05")
        workers = 8
        barrier = threading.Barrier(workers)
        results = []

        def render():
            resolver = make_resolver(reader=reader, cache=cache)
            barrier.wait()
            results.append(resolver.resolve("Latin", "Sancti/08-05"))

        threads = [threading.Thread(target=render) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == workers
        assert all(result == expected for result in results)
        assert cache.entries == 2
        entry = cache.get(OfficeContext().version, "Latin", "Sancti/08-05.txt")
        assert entry.depth is ResolveDepth.ALL


class TestTrace:

    def test_resolver_records_trace(self, make_resolver, ctx_tridentine):
        trace = EvaluationTrace(source="Sancti/08-05")
        resolver = make_resolver(OFFICE_FILES, ctx=ctx_tridentine, trace=trace)

        resolver.resolve("Latin", "Sancti/08-05")

        assert any(t.predicate == "monastica" for t in trace.terms)


class TestDataFiles:
    """Tests for DataFileReader and error propagation."""

    @pytest.fixture
    def data_dir(self, tmp_path):
        latin = tmp_path / "Latin" / "Sancti"
        latin.mkdir(parents=True)
        (latin / "12-25.txt").write_text(
            "\ufeff[Rank]\nDuplex I classis\n[Oratio]\n@Commune/C1:Oratio\n", encoding="utf-8"
        )
        commune = tmp_path / "Latin" / "Commune"
        commune.mkdir()
        (commune / "C1.txt").write_text("[Oratio]\nConcede\n", encoding="utf-8")
        return tmp_path

    def test_reads_lines_without_bom(self, data_dir):
        reader = DataFileReader(data_dir)

        assert reader.read("Latin", "Sancti/12-25.txt")[0] == "[Rank]"

    def test_missing_file_is_none(self, data_dir):
        assert DataFileReader(data_dir).read("Latin", "Sancti/01-01.txt") is None
        assert DataFileReader(data_dir).read("English", "Sancti/12-25.txt") is None

    def test_resolve_from_disk(self, data_dir, engine_settings):
        resolver = TextResolver(
            OfficeContext(), reader=DataFileReader(data_dir), settings=engine_settings
        )

        assert resolver.resolve("Latin", "Sancti/12-25") == {
            "Rank": "Duplex I classis\n",
            "Oratio": "Concede\n",
        }

    def test_directory_raises(self, data_dir, engine_settings):
        (data_dir / "Latin" / "Broken.txt").mkdir()
        resolver = TextResolver(
            OfficeContext(), reader=DataFileReader(data_dir), settings=engine_settings
        )

        with pytest.raises(DataFileError) as exc_info:
            resolver.resolve("Latin", "Broken")
        assert exc_info.value.language == "Latin"
        assert exc_info.value.path == "Broken.txt"

    def test_undecodable_raises(self, data_dir):
        (data_dir / "Latin" / "Bad.txt").write_bytes(b"[Rank]\n\xff\xfe\xfa\n")

        with pytest.raises(DataFileError):
            DataFileReader(data_dir).read("Latin", "Bad.txt")

    def test_path_escape_raises(self, data_dir):
        with pytest.raises(DataFileError):
            DataFileReader(data_dir).read("Latin", "../../outside.txt")

    def test_in_memory_reader_strips_bom(self):
        reader = InMemoryReader({"Latin": {"A.txt": "\ufeff[Foo]\nx"}})

        assert reader.read("Latin", "A.txt") == ["[Foo]", "x"]
        assert reader.read("Latin", "B.txt") is None
        assert reader.reads == [("Latin", "A.txt"), ("Latin", "B.txt")]
