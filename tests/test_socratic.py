"""Tests for the Socratic dialogue engine."""

import random

import pytest

from n4l_editor.core.socratic import (
    SocraticEngine,
    connection_exists,
    extract_concepts,
    extract_key_term,
    extract_new_concepts,
    find_central_label,
    has_contradiction,
)

from conftest import make_graph


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return SocraticEngine(rng=random.Random(7), clock=clock)


@pytest.fixture
def mystery_graph():
    return make_graph([("Jean", "Victor"), ("Victor", "Manoir")])


def answer_all(engine, session, answers):
    return [engine.process_answer(session, answer) for answer in answers]


# ============================================================================
# Text helpers
# ============================================================================

def test_extract_concepts():
    assert extract_concepts("Le Manoir, (caché) sous la pluie!") == ["manoir", "caché", "pluie"]


def test_extract_key_term():
    assert extract_key_term("Oui, vraiment.") == "vraiment"
    assert extract_key_term("oui non") == "oui"
    assert extract_key_term("") == "cela"


def test_extract_new_concepts_skips_known_labels(mystery_graph):
    assert extract_new_concepts("Victor garde le manoir", mystery_graph) == ["garde"]


def test_has_contradiction():
    assert has_contradiction("Il ment toujours, mais jamais à moi")
    assert not has_contradiction("Il ment toujours")


def test_connection_exists_ignores_case_and_direction(mystery_graph):
    assert connection_exists("victor", "jean", mystery_graph)
    assert not connection_exists("jean", "manoir", mystery_graph)


def test_find_central_label(chain_graph):
    assert find_central_label(chain_graph) == "B"
    assert find_central_label(make_graph([], isolated=["Seul", "Autre"])) == "Seul"
    assert find_central_label({}) == ""


# ============================================================================
# Session lifecycle
# ============================================================================

def test_start_session(engine, mystery_graph):
    session = engine.start_session("victor", mystery_graph)

    assert session["id"].startswith("socratic_")
    assert session["current_focus"] == "Victor"
    assert session["mode"] == "adaptive"
    assert session["start_time"] == 1000.0
    question = session["questions"][0]
    assert question["id"] == "q_0"
    assert question["type"] == "exploration"
    assert question["hints"]
    assert question["is_final"] is False


def test_session_ids_are_unique(engine, mystery_graph):
    ids = {engine.start_session("x", mystery_graph)["id"] for _ in range(20)}

    assert len(ids) == 20


def test_unknown_mode_falls_back_to_adaptive(engine, mystery_graph):
    assert engine.start_session("x", mystery_graph, mode="bavardage")["mode"] == "adaptive"


def test_empty_topic_focuses_on_central_node(engine, star_graph):
    assert engine.start_session("", star_graph)["current_focus"] == "hub"


@pytest.mark.parametrize("mode,kind,category", [
    ("exploration", "exploration", "discovery"),
    ("clarification", "clarification", "definition"),
    ("challenge", "challenge", "critical"),
    ("synthesis", "synthesis", "conclusion"),
])
def test_fixed_modes_ask_matching_questions(engine, mystery_graph, mode, kind, category):
    session = engine.start_session("Victor", mystery_graph, mode=mode)
    response = engine.process_answer(session, "Oui.")

    for question in (session["questions"][0], response["question"]):
        assert (question["type"], question["category"]) == (kind, category)


def test_short_answer_deepens(engine, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)

    response = engine.process_answer(session, "Oui.")

    assert session["depth"] == 1
    assert session["max_depth"] == 1
    assert session["current_question_index"] == 1
    assert session["questions"][0]["answer"] == "Oui."
    assert response["session_id"] == session["id"]
    assert response["question"]["id"] == "q_1"
    assert response["question"]["type"] in ("exploration", "clarification")
    assert response["is_complete"] is False
    assert response["progress"]["questions_asked"] == 2


def test_long_plain_answer_moves_back_up(engine, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)
    engine.process_answer(session, "Oui.")

    # Long, certain and only about known nodes
    engine.process_answer(session, "Victor et Jean, oui, Victor et Jean et Victor et Jean et le Manoir.")

    assert session["depth"] == 0
    assert session["max_depth"] == 1


def test_session_concludes_after_ten_questions(engine, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)

    responses = answer_all(engine, session, ["Oui."] * 10)

    assert [r["is_complete"] for r in responses] == [False] * 9 + [True]
    final = responses[-1]["question"]
    assert final["type"] == "synthesis"
    assert final["is_final"] is True
    assert responses[-1]["progress"]["completion_score"] == 100
    with pytest.raises(ValueError):
        engine.process_answer(session, "Encore ?")


def test_session_concludes_after_twenty_minutes(engine, clock, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)
    clock.now += 20 * 60 + 1

    assert engine.process_answer(session, "Oui.")["is_complete"] is True


def test_repeated_answers_conclude(engine, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)

    responses = answer_all(engine, session, ["alpha", "beta", "secret manoir", "manoir secret"])

    assert [r["is_complete"] for r in responses] == [False, False, False, True]


def test_analyze_answer(engine, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)

    insights = engine.analyze_answer(
        "Le jardin compte parce que peut-être il pleut toujours et jamais", session,
    )

    assert insights[0].startswith("Nouveaux concepts identifiés : jardin")
    assert "Relation causale détectée" in insights
    assert "Zone d'incertitude identifiée - opportunité d'exploration" in insights
    assert "Tension conceptuelle détectée - à clarifier" in insights


def test_connection_suggestions_skip_existing_links(engine):
    graph = make_graph([("manoir", "secret")])
    session = engine.start_session("manoir", graph)
    session["questions"][0]["answer"] = "manoir secret jardin"

    suggestions = engine.connection_suggestions(session)

    assert [(s["from"], s["to"]) for s in suggestions] == [("manoir", "jardin"), ("secret", "jardin")]
    assert suggestions[0]["suggested_relation"] == "lié à"
    assert suggestions[0]["reason"] == "Mentionnés ensemble dans la question 1"


def test_connection_suggestions_are_capped(engine, mystery_graph):
    session = engine.start_session("Victor", mystery_graph)
    session["questions"][0]["answer"] = "pluie parce que orage tonnerre éclair nuage vent froid"

    suggestions = engine.connection_suggestions(session)

    assert len(suggestions) == 5
    assert all(s["suggested_relation"] == "cause" for s in suggestions)


# ============================================================================
# Progress and summary
# ============================================================================

def bare_session(questions, depth=0, insights=(), is_complete=False):
    return {
        "id": "socratic_test",
        "topic": "Mémoire",
        "start_time": 1000.0,
        "graph_data": {"nodes": [], "edges": []},
        "questions": questions,
        "depth": depth,
        "max_depth": depth,
        "insights": list(insights),
        "is_complete": is_complete,
    }


@pytest.mark.parametrize("asked,phase", [
    (3, "Exploration"),
    (5, "Approfondissement"),
    (8, "Clarification"),
    (13, "Synthèse"),
])
def test_progress_phases(engine, asked, phase):
    progress = engine.progress(bare_session([{}] * asked))

    assert progress["phase"] == phase
    assert progress["questions_asked"] == asked


def test_completion_score(engine):
    assert engine.progress(bare_session([{}] * 3))["completion_score"] == 8
    busy = bare_session([{}] * 15, depth=5, insights=["i"] * 20)
    assert engine.progress(busy)["completion_score"] == 100
    assert engine.progress(bare_session([{}], is_complete=True))["completion_score"] == 100


def test_quality_score(engine):
    session = bare_session(
        [{"answer": "a" * 120, "depth": 1}, {"depth": 4}],
        insights=["i"] * 6,
    )

    # participation 15, length 30, insights 20, depth 20
    assert engine.quality_score(session) == 85
    assert engine.quality_score(bare_session([{"depth": 0}])) == 0


def test_summary(engine, clock):
    session = bare_session(
        [
            {"answer": "manoir ancien", "depth": 0},
            {"answer": "manoir hanté", "depth": 2},
            {"depth": 1},
        ],
        depth=1,
        insights=["Relation causale détectée"],
    )
    clock.now = 1090.4

    summary = engine.summary(session)

    assert summary["session_id"] == "socratic_test"
    assert summary["duration"] == 90
    assert summary["total_questions"] == 3
    assert summary["max_depth_reached"] == 2
    assert summary["key_concepts"] == ["manoir"]
    assert summary["key_insights"] == ["Relation causale détectée"]
    assert summary["suggested_follow_up"][0] == (
        "Comment pourriez-vous valider ou réfuter les insights découverts ?"
    )
    assert "Comment le concept de 'manoir' s'intègre-t-il dans votre compréhension globale ?" in (
        summary["suggested_follow_up"]
    )
