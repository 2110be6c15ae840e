"""Tests for the search pipeline (scoped, global, hybrid fallback)."""
import pytest

from docharbor.models import RankedDocument
from docharbor.pipeline import SearchPipeline, cap_per_corpus, extract_excerpt

from conftest import make_doc


@pytest.fixture
def pipeline():
    p = SearchPipeline(per_corpus_limit=2)
    p.index_corpus("webawesome", [
        make_doc("Button", "The button component triggers actions.", corpus_id="webawesome",
                 path="components/button.md", category="Components"),
        make_doc("Button Group", "Group several button elements.", corpus_id="webawesome",
                 path="components/button-group.md", category="Components"),
        make_doc("Installation", "Install webawesome with npm.", corpus_id="webawesome",
                 path="getting-started/installation.md", category="Getting Started"),
    ])
    p.index_corpus("routerkit", [
        make_doc("Routing", "Every route maps a path to a page. button links too.",
                 corpus_id="routerkit", path="guides/routing.md", category="Guides"),
        make_doc("Link Button", "A button that navigates.", corpus_id="routerkit",
                 path="api/link-button.md", category="Api"),
        make_doc("Router", "The router navigates between routes.", corpus_id="routerkit",
                 path="api/router.md", category="Api"),
    ])
    return p


class TestExcerpt:
    def test_window_around_match(self):
        doc = make_doc("X", "a" * 100 + " needle " + "b" * 100)
        excerpt = extract_excerpt(doc, "needle")
        assert excerpt.startswith("...") and excerpt.endswith("...")
        assert "needle" in excerpt
        assert len(excerpt) == 3 + 60 + len("needle") + 60 + 3

    def test_falls_back_to_description_then_content(self):
        assert extract_excerpt(make_doc("X", "body", description="desc"), "zzz") == "desc"
        assert extract_excerpt(make_doc("X", "body text"), "zzz") == "body text..."


class TestSearch:
    def test_explicit_corpus(self, pipeline):
        response = pipeline.search("button", corpus_id="routerkit")
        assert response.strategy.mode == "scoped"
        assert {r.corpus_id for r in response.results} == {"routerkit"}
        assert response.results[0].section in ("Api", "Guides")

    def test_global_caps_per_corpus(self, pipeline):
        response = pipeline.search("button", auto_detect=False)
        assert response.strategy.mode == "global"
        counts = {}
        for r in response.results:
            counts[r.corpus_id] = counts.get(r.corpus_id, 0) + 1
        assert max(counts.values()) <= 2
        assert set(counts) == {"webawesome", "routerkit"}

    def test_detected_corpus_with_few_hits_goes_hybrid(self, pipeline):
        response = pipeline.search("webawesome install")
        assert response.strategy.mode == "hybrid"
        assert response.strategy.corpus_id == "webawesome"
        assert response.results[0].corpus_id == "webawesome"
        files = [r.file for r in response.results]
        assert len(files) == len(set(files))

    def test_file_paths_unique_across_corpora(self):
        p = SearchPipeline()
        for corpus_id in ("one", "two"):
            p.index_corpus(corpus_id, [
                make_doc("Readme", "Run npm install to get started.", corpus_id=corpus_id,
                         path="README.md"),
                make_doc(f"Install {corpus_id}", "install the package", corpus_id=corpus_id,
                         path=f"{corpus_id}/install.md"),
            ])
        files = [r.file for r in p.search("install", auto_detect=False).results]
        assert files.count("README.md") == 1
        assert len(files) == len(set(files))

    def test_detected_corpus_with_enough_hits_stays_scoped(self, pipeline):
        pipeline.index_corpus("webawesome", [
            make_doc(f"Button {name}", "webawesome button", corpus_id="webawesome",
                     path=f"components/button-{name}.md")
            for name in ("sizes", "variants", "icons", "loading")
        ])
        response = pipeline.search("webawesome button")
        assert response.strategy.mode == "scoped"
        assert {r.corpus_id for r in response.results} == {"webawesome"}

    def test_top_k(self, pipeline):
        assert len(pipeline.search("button", auto_detect=False, top_k=1).results) == 1

    def test_no_results(self, pipeline):
        response = pipeline.search("zzzzzz")
        assert response.results == []
        assert response.strategy.mode == "global"

    def test_removed_corpus_not_searched(self, pipeline):
        pipeline.remove_corpus("routerkit")
        response = pipeline.search("router", auto_detect=False)
        assert all(r.corpus_id != "routerkit" for r in response.results)
        assert pipeline.indexed_corpora() == ["webawesome"]

    def test_result_dict(self, pipeline):
        result = pipeline.search("router", corpus_id="routerkit").results[0].to_dict()
        assert set(result) == {"corpusId", "corpusName", "section", "title", "excerpt",
                               "file", "score", "source"}


class TestCapPerCorpus:
    def test_keeps_order(self):
        ranked = [RankedDocument(make_doc(str(i), corpus_id="a" if i < 3 else "b"), 1.0) for i in range(5)]
        kept = cap_per_corpus(ranked, 2)
        assert [r.document.title for r in kept] == ["0", "1", "3", "4"]
