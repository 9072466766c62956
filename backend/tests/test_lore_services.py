"""
Tests for startup wiring of the lore pipeline.
"""
import json

from eldermind.core.config import Settings
from eldermind.core.metrics import registry
from eldermind.lore.services import build_lore_services
from eldermind.services.ai.llm_client import LLMClient


def test_build_lore_services_from_settings(tmp_path):
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps([
        {"id": "a", "title": "Numidium", "source": "UESP", "text": "brass golem"},
        {"id": "b", "title": "Vivec", "source": "UESP", "text": "warrior-poet"},
    ]))
    settings = Settings(
        corpus_path=path,
        retrieval_threshold=1.0,
        retrieval_top_k=2,
        retrieval_enabled=False,
        decision_log_size=7,
    )
    client = LLMClient(api_base="http://llm.test/v1", api_key=None, model="m")

    services = build_lore_services(settings, llm_client=client)

    orchestrator = services.orchestrator
    assert len(orchestrator.retriever.corpus) == 2
    assert orchestrator.threshold == 1.0
    assert orchestrator.top_k == 2
    assert orchestrator.retrieval_enabled is False
    assert orchestrator.decision_log is services.decision_log
    assert orchestrator.gateway.client is client
    assert orchestrator.chat_service.client is client
    assert services.llm_client is client
    assert registry.get_sample_value("lore_corpus_documents") == 2


def test_missing_corpus_builds_empty_pipeline(tmp_path):
    settings = Settings(corpus_path=tmp_path / "missing.json")

    services = build_lore_services(settings)

    assert len(services.orchestrator.retriever.corpus) == 0
    decision, _ = services.orchestrator.decide("Numidium")
    assert decision.fallback_reason.value == "EMPTY_CORPUS"
