"""Tests for the heuristic semantic index and its pluggable scorer."""
from docharbor.semantic_index import HeuristicScorer, PreparedDocument, SemanticIndex

from conftest import make_doc


def _score(query, doc):
    return HeuristicScorer().score(query, PreparedDocument.from_document(doc))


class TestHeuristicScorer:
    def test_exact_title(self):
        assert _score("button", make_doc("Button")) == 10.0

    def test_title_position_matters(self):
        early = _score("button", make_doc("Button Group"))
        late = _score("button", make_doc("Icon Button"))
        assert early > late > 0

    def test_description_and_content(self):
        doc = make_doc("Other", "button button button", description="A button")
        assert _score("button", doc) == 2.0 + 3 * 0.5

    def test_content_occurrences_capped(self):
        doc = make_doc("Other", "tab " * 20)
        assert _score("tab", doc) == 5 * 0.5

    def test_all_words_bonus(self):
        doc = make_doc("Forms", "validate input fields before submit")
        assert _score("validate submit", doc) == 3.0

    def test_empty_query(self):
        assert _score("   ", make_doc("Button", "button")) == 0.0


class KeywordScorer:
    """Scores 1.0 for documents whose title contains the query."""

    def prepare(self, documents):
        return [PreparedDocument.from_document(d) for d in documents]

    def score(self, query, prepared):
        return 1.0 if query.lower() in prepared.title else 0.0


class TestSemanticIndex:
    def test_scoped_search_sorted(self):
        index = SemanticIndex()
        index.build_index("lib", [
            make_doc("Icon Button", "button"),
            make_doc("Button"),
            make_doc("Card", "nothing relevant"),
        ])
        hits = index.search_scoped("lib", "button")
        assert [h.document.title for h in hits] == ["Button", "Icon Button"]

    def test_empty_query_returns_nothing(self):
        index = SemanticIndex()
        index.build_index("lib", [make_doc("Button")])
        assert index.search_scoped("lib", "") == []

    def test_global_and_limit(self):
        index = SemanticIndex()
        index.build_index("a", [make_doc("Button", corpus_id="a")])
        index.build_index("b", [make_doc("Button", corpus_id="b"), make_doc("Button Group", corpus_id="b")])
        assert len(index.search_global("button")) == 3
        assert len(index.search_global("button", limit=1)) == 1

    def test_custom_scorer(self):
        index = SemanticIndex(scorer=KeywordScorer())
        index.build_index("lib", [make_doc("Dialog"), make_doc("Drawer", "dialog")])
        hits = index.search_scoped("lib", "dialog")
        assert [h.document.title for h in hits] == ["Dialog"]

    def test_remove(self):
        index = SemanticIndex()
        index.build_index("lib", [make_doc("Button")])
        assert index.remove_corpus("lib")
        assert index.search_scoped("lib", "button") == []
        assert index.stats()["corpus_count"] == 0
