"""
Tests for corpus loading.
"""
import json

import pytest

from eldermind.core.config import DEFAULT_CORPUS_PATH
from eldermind.lore.corpus import Corpus, JsonCorpusLoader, LoreDocument, load_corpus


@pytest.fixture
def write_corpus(tmp_path):
    def write(content):
        path = tmp_path / "lore_corpus.json"
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(json.dumps(content), encoding="utf-8")
        return path
    return write


def test_loads_documents_in_file_order(write_corpus):
    path = write_corpus([
        {"id": "a", "source": "UESP", "title": "Numidium", "url": "", "text": "brass golem"},
        {"id": "b", "source": "InGameBook", "title": "Vivec", "text": "warrior-poet"},
    ])

    documents = JsonCorpusLoader(path).load()

    assert [d.id for d in documents] == ["a", "b"]
    assert documents[1].url is None


def test_unknown_fields_are_ignored_and_embedding_kept(write_corpus):
    path = write_corpus([
        {"id": "a", "title": "Numidium", "canon": "disputed", "embedding": [0.1, -0.2, 0.3]},
    ])

    documents = JsonCorpusLoader(path).load()

    assert documents[0].embedding == (0.1, -0.2, 0.3)
    assert not hasattr(documents[0], "canon")


def test_missing_file_yields_empty(tmp_path):
    assert JsonCorpusLoader(tmp_path / "missing.json").load() == []


@pytest.mark.parametrize("content", [
    "{not json",
    '{"id": "not-a-list"}',
    '[{"id": 1, "title": ["wrong"]}]',
])
def test_malformed_file_yields_empty(write_corpus, content):
    assert JsonCorpusLoader(write_corpus(content)).load() == []


def test_load_corpus_wraps_documents(write_corpus):
    path = write_corpus([{"id": "a", "title": "Numidium", "text": "brass golem"}])

    corpus = load_corpus(JsonCorpusLoader(path))

    assert isinstance(corpus, Corpus)
    assert len(corpus) == 1
    assert corpus[0].title == "Numidium"


def test_load_corpus_empty_on_failure(tmp_path):
    corpus = load_corpus(JsonCorpusLoader(tmp_path / "missing.json"))

    assert len(corpus) == 0
    assert list(corpus) == []


def test_corpus_is_read_only():
    corpus = Corpus([LoreDocument(id="a")])

    with pytest.raises(TypeError):
        corpus[0] = LoreDocument(id="b")
    with pytest.raises(Exception):
        corpus[0].id = "b"


def test_packaged_corpus_loads():
    corpus = load_corpus(JsonCorpusLoader(DEFAULT_CORPUS_PATH))

    assert len(corpus) > 0
    assert any(d.title == "Numidium" for d in corpus)
