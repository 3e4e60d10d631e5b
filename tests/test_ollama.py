"""Tests for the Ollama client, with httpx's mock transport standing in for the server."""

import asyncio
import json

import httpx
import pytest

from n4l_editor.api.ollama import OllamaService, clean_json, graph_facts
from n4l_editor.core.exceptions import GenerationError

from conftest import make_graph, relation


def service_replying(text, status=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(status, json={"response": text})

    return OllamaService(url="http://ollama.test/api/generate", model="test-model",
                         transport=httpx.MockTransport(handler))


def service_raising(error):
    def handler(request):
        raise error

    return OllamaService(url="http://ollama.test/api/generate", transport=httpx.MockTransport(handler))


def run(coroutine):
    return asyncio.run(coroutine)


def test_clean_json():
    assert clean_json('Voici : {"a": [1, 2]} fin') == '{"a": [1, 2]}'
    assert clean_json("liste [1, 2] ok") == "[1, 2]"
    assert clean_json("rien ici") == ""
    assert clean_json("} mal ordonné {") == ""


def test_generate_sends_non_streaming_request():
    seen = []
    service = service_replying("Bonjour", seen=seen)

    assert run(service.generate("Salut")) == "Bonjour"
    assert seen == [{"model": "test-model", "prompt": "Salut", "stream": False}]


def test_generate_passes_format_hint():
    seen = []
    service = service_replying('{"ok": true}', seen=seen)

    run(service.generate("Salut", "json"))

    assert seen[0]["format"] == "json"


def test_invalid_json_for_json_request_is_an_error():
    with pytest.raises(GenerationError):
        run(service_replying("pas du json").generate("Salut", "json"))


def test_error_status_is_an_error():
    with pytest.raises(GenerationError, match="status 500"):
        run(service_replying("boom", status=500).generate("Salut"))


def test_non_json_body_is_an_error():
    service = OllamaService(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")))

    with pytest.raises(GenerationError):
        run(service.generate("Salut"))


@pytest.mark.parametrize("error", [
    httpx.ReadTimeout("lent"),
    httpx.ConnectError("refusé"),
])
def test_transport_failures_are_errors(error):
    with pytest.raises(GenerationError):
        run(service_raising(error).generate("Salut"))


def test_extract_subjects_flattens_categories():
    service = service_replying('{"personnes": ["Jean", "Marie"], "lieux": ["Manoir"], "note": "x"}')

    assert run(service.extract_subjects("texte")) == ["Jean", "Marie", "Manoir"]


def test_extract_subjects_accepts_plain_list():
    assert run(service_replying('["Jean", 3, "Marie"]').extract_subjects("texte")) == ["Jean", "Marie"]


def test_generate_n4l_strips_fences():
    service = service_replying("```n4l\n:: Personnages ::\nJean (âge) 40\n```")

    assert run(service.generate_n4l("Jean a 40 ans.")) == ":: Personnages ::\nJean (âge) 40"


def test_analyze_graph_sends_facts():
    seen = []
    graph = make_graph([("Jean", "Marie")], label="connaît")

    assert run(service_replying("Résumé", seen=seen).analyze_graph(graph)) == "Résumé"
    assert "- Jean connaît Marie." in seen[0]["prompt"]


def test_graph_facts_by_edge_type():
    graph = {
        "nodes": [],
        "edges": [
            relation("Jean", "Marie", "connaît"),
            relation("Jean", "Johnny", "", "equivalence"),
            relation("Suspects", "Jean", "contient", "group"),
        ],
    }

    assert graph_facts(graph) == (
        "Faits connus :\n"
        "- Jean connaît Marie.\n"
        "- Jean est équivalent à Johnny.\n"
        "- Le groupe 'Suspects' contient Jean."
    )


def test_expansion_cone_prompt_lists_nodes_and_links():
    seen = []
    service = service_replying("Analyse", seen=seen)

    run(service.analyze_expansion_cone("Jean", [{"id": "Marie"}], [{"from": "Jean", "to": "Marie", "type": "relation"}]))

    prompt = seen[0]["prompt"]
    assert "NŒUD CENTRAL: Jean" in prompt
    assert "- Jean → Marie (type: relation)" in prompt


def test_socratic_suggestions_use_answered_exchanges():
    seen = []
    service = service_replying('Voici : ["Pourquoi ?", "Comment ?"]', seen=seen)
    questions = [
        {"text": "Q zéro", "answer": "R zéro"},
        {"text": "Q un", "answer": "R un"},
        {"text": "Q deux", "answer": "R deux"},
        {"text": "Q trois"},
    ]

    suggestions = run(service.suggest_socratic_questions("Mémoire", questions))

    assert suggestions == ["Pourquoi ?", "Comment ?"]
    prompt = seen[0]["prompt"]
    assert "Q: Q un\nA: R un" in prompt
    assert "Q: Q deux\nA: R deux" in prompt
    assert "Q zéro" not in prompt
    assert "Q trois" not in prompt


def test_socratic_suggestions_require_a_list():
    with pytest.raises(GenerationError):
        run(service_replying('{"questions": []}').suggest_socratic_questions("Mémoire", []))


def test_analyze_socratic_response():
    service = service_replying('{"concepts": ["mémoire"], "assumptions": [], "contradictions": []}')

    assert run(service.analyze_socratic_response("Mémoire", "Je me souviens"))["concepts"] == ["mémoire"]
    with pytest.raises(GenerationError):
        run(service_replying("[1]").analyze_socratic_response("Mémoire", "Je me souviens"))
