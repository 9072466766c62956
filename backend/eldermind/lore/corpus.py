"""
Lore corpus: documents, the immutable in-memory corpus, and the JSON loader.

The corpus file is a JSON array of objects:

    [{"id": "uesp-numidium-001", "source": "UESP", "title": "Numidium",
      "url": "https://en.uesp.net/wiki/Lore:Numidium", "text": "...",
      "embedding": [0.12, -0.03, ...]}]

`embedding` is optional and carried through untouched; scoring never reads it.
If loading fails the service runs without grounded lore (chat-only fallback).
"""
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union, overload

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from eldermind.core.logging import get_logger

logger = get_logger(__name__)


class LoreDocument(BaseModel):
    """A single curated lore snippet."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[str] = None
    source: Optional[str] = None  # UESP / InGameBook
    title: Optional[str] = None
    url: Optional[str] = None
    text: Optional[str] = None
    embedding: Optional[Tuple[float, ...]] = None


_DOCUMENT_LIST = TypeAdapter(List[LoreDocument])


class Corpus(Sequence[LoreDocument]):
    """
    Ordered, read-only collection of lore documents.

    Load order is preserved and used as the tie-break order for ranking.
    Safe to share across concurrent requests.
    """

    __slots__ = ("_documents",)

    def __init__(self, documents: Sequence[LoreDocument] = ()):
        self._documents: Tuple[LoreDocument, ...] = tuple(documents)

    @overload
    def __getitem__(self, index: int) -> LoreDocument: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[LoreDocument, ...]: ...

    def __getitem__(self, index: Union[int, slice]):
        return self._documents[index]

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[LoreDocument]:
        return iter(self._documents)

    def __repr__(self) -> str:
        return f"Corpus(size={len(self._documents)})"


class JsonCorpusLoader:
    """
    Loads the lore corpus from a JSON file on disk.

    `load()` never raises: a missing file, unreadable file, malformed JSON or
    a payload of the wrong shape is logged and yields an empty list.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[LoreDocument]:
        try:
            raw = self.path.read_bytes()
            documents = _DOCUMENT_LIST.validate_json(raw)
        except (OSError, ValidationError, ValueError) as e:
            logger.error(
                "lore_corpus_load_failed",
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

        logger.info("lore_corpus_loaded", path=str(self.path), documents=len(documents))
        return documents


def load_corpus(loader: JsonCorpusLoader) -> Corpus:
    """
    Load the corpus once and log a short startup sanity check.
    """
    corpus = Corpus(loader.load())

    if len(corpus) == 0:
        logger.warning(
            "lore_corpus_empty",
            path=str(loader.path),
            message="Lore corpus is empty. Answers will not be grounded.",
        )
        return corpus

    first = corpus[0]
    preview = (first.text or "")[:80]
    logger.info(
        "lore_corpus_startup_check",
        size=len(corpus),
        first_id=first.id,
        first_title=first.title,
        first_text_preview=preview,
    )
    return corpus
