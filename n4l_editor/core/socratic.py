"""Template-driven Socratic dialogue over a graph snapshot.

A session is a plain dict so it can be archived as JSON and reloaded
as is. SocraticEngine mutates the session it is given; callers are
responsible for serializing access to it.
"""

import logging
import random
import time
import uuid

from .constants import (
    SESSION_ID_PREFIX,
    MAX_SOCRATIC_QUESTIONS,
    CONCLUDE_AFTER_QUESTIONS,
    CONCLUDE_AT_DEPTH,
    CONCLUDE_AFTER_SECONDS,
    MAX_CONNECTION_SUGGESTIONS,
    COMMON_WORDS,
)
from .types import GraphData
from .utils import contains_any

logger = logging.getLogger(__name__)

MODES = ("exploration", "clarification", "challenge", "synthesis", "adaptive")

EXPLORATION_TEMPLATES = (
    "Qu'est-ce qui vous amène à penser que {focus} ?",
    "Pouvez-vous m'en dire plus sur {focus} ?",
    "Comment {focus} est-il relié à {related} dans votre compréhension ?",
    "Quels aspects de {focus} n'avez-vous pas encore explorés ?",
    "Si vous deviez expliquer {focus} à quelqu'un qui n'y connaît rien, par où commenceriez-vous ?",
    "Qu'est-ce qui rend {focus} important dans ce contexte ?",
    "Y a-t-il des connexions entre {focus} et d'autres concepts que vous n'avez pas encore identifiées ?",
)

CLARIFICATION_TEMPLATES = (
    "Que voulez-vous dire exactement par '{focus}' ?",
    "Pouvez-vous donner un exemple concret de {focus} ?",
    "Comment distinguez-vous {focus} de {focus} ?",
    "Quelle est la différence essentielle entre {focus} et ce que vous avez mentionné précédemment ?",
    "Si {focus} est vrai, qu'est-ce que cela implique nécessairement ?",
    "Comment savez-vous que {focus} ?",
    "Sur quoi vous basez-vous pour affirmer que {focus} ?",
)

CHALLENGE_TEMPLATES = (
    "Et si le contraire de {focus} était vrai, qu'est-ce que cela changerait ?",
    "Quelles sont les limites de cette approche concernant {focus} ?",
    "Existe-t-il des cas où {focus} ne s'applique pas ?",
    "Comment quelqu'un pourrait-il argumenter contre {focus} ?",
    "Quelles hypothèses faites-vous implicitement à propos de {focus} ?",
    "Y a-t-il des contradictions potentielles dans votre raisonnement sur {focus} ?",
    "Quelles preuves contrediraient votre position sur {focus} ?",
)

SYNTHESIS_TEMPLATES = (
    "En résumé, quelle est la relation la plus importante que vous avez découverte ?",
    "Si vous deviez retenir une seule chose de cette exploration, ce serait quoi ?",
    "Comment cette discussion a-t-elle changé votre compréhension de {topic} ?",
    "Quelles nouvelles questions cette exploration a-t-elle soulevées ?",
    "Quelle est la prochaine étape logique dans votre exploration de {topic} ?",
    "Comment connecteriez-vous tout ce que nous avons discuté ?",
)

EXPLORATION_HINTS = [
    "Pensez aux relations de cause à effet",
    "Considérez les différentes perspectives",
    "N'hésitez pas à mentionner des détails qui semblent mineurs",
]

CHALLENGE_HINTS = [
    "Il n'y a pas de mauvaise réponse",
    "Considérez les cas extrêmes",
    "Pensez aux exceptions",
]

CAUSAL_WORDS = ("parce que", "donc", "car")
HEDGE_WORDS = ("peut-être", "je pense", "probablement")
UNCERTAINTY_WORDS = ("peut-être", "je ne sais pas", "pas sûr", "difficile à dire")
CONTRADICTION_PAIRS = (("toujours", "jamais"), ("tous", "aucun"), ("impossible", "certain"))

KEY_TERM_STRIP = ".,;:!?"
CONCEPT_STRIP = ".,;:!?()"


# ============================================================================
# Text helpers
# ============================================================================

def extract_concepts(text: str) -> list[str]:
    """Lowercased words longer than three letters that are not common words."""
    concepts = []
    for word in text.split():
        cleaned = word.lower().strip(CONCEPT_STRIP)
        if len(cleaned) > 3 and cleaned not in COMMON_WORDS:
            concepts.append(cleaned)
    return concepts


def extract_key_term(text: str) -> str:
    """First significant word of an answer, for clarification questions."""
    words = text.split()
    for word in words:
        cleaned = word.lower().strip(KEY_TERM_STRIP)
        if len(cleaned) > 4 and cleaned not in COMMON_WORDS:
            return cleaned
    return words[0] if words else "cela"


def extract_new_concepts(text: str, graph: GraphData) -> list[str]:
    """Concepts of the text that are not already node labels."""
    known = {node.get("label", "").lower() for node in graph.get("nodes") or []}
    return [concept for concept in extract_concepts(text) if concept not in known]


def has_contradiction(answer: str) -> bool:
    lower = answer.lower()
    return any(a in lower and b in lower for a, b in CONTRADICTION_PAIRS)


def connection_exists(a: str, b: str, graph: GraphData) -> bool:
    a, b = a.lower(), b.lower()
    for edge in graph.get("edges") or []:
        ends = (edge["from"].lower(), edge["to"].lower())
        if ends == (a, b) or ends == (b, a):
            return True
    return False


def find_central_label(graph: GraphData) -> str:
    """Label of the most connected node, the first node when nothing is connected."""
    nodes = graph.get("nodes") or []
    if not nodes:
        return ""

    degrees: dict[str, int] = {}
    for edge in graph.get("edges") or []:
        degrees[edge["from"]] = degrees.get(edge["from"], 0) + 1
        degrees[edge["to"]] = degrees.get(edge["to"], 0) + 1
    if not degrees:
        return nodes[0].get("label", nodes[0]["id"])

    labels = {node["id"]: node.get("label", node["id"]) for node in nodes}
    central = max(degrees, key=degrees.get)
    return labels.get(central, central)


def _answered(session: dict) -> list[dict]:
    return [q for q in session["questions"] if q.get("answer")]


# ============================================================================
# Engine
# ============================================================================

class SocraticEngine:
    """
    Generates questions and interprets answers for one session at a time.

    rng and clock are injectable so tests can pin template choice and time.
    """

    def __init__(self, rng: random.Random | None = None, clock=time.time):
        self.rng = rng or random.Random()
        self.clock = clock

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(self, topic: str, graph: GraphData, mode: str = "adaptive",
                      context: str = "") -> dict:
        """Create a session with its first question."""
        if mode not in MODES:
            mode = "adaptive"
        session = {
            "id": f"{SESSION_ID_PREFIX}{uuid.uuid4().hex[:12]}",
            "start_time": self.clock(),
            "topic": topic,
            "context": context,
            "graph_data": graph,
            "questions": [],
            "current_question_index": 0,
            "current_focus": self.identify_focus(graph, topic),
            "insights": [],
            "depth": 0,
            "max_depth": 0,
            "mode": mode,
            "is_complete": False,
        }
        session["questions"].append(self.generate_question(session, None))
        logger.info(f"Socratic session {session['id']} started (mode={mode}, focus={session['current_focus']!r})")
        return session

    def process_answer(self, session: dict, answer: str) -> dict:
        """
        Record an answer, update depth and focus, and ask the next question.
        Returns the response payload; the session is updated in place.
        """
        if session.get("is_complete"):
            raise ValueError(f"Session {session['id']} is already complete")

        index = session["current_question_index"]
        current = session["questions"][index] if index < len(session["questions"]) else None
        if current is not None:
            current["answer"] = answer
            current["answer_time"] = self.clock()

        insights = self.analyze_answer(answer, session)
        session["insights"].extend(insights)

        if self.should_deepen(answer, session):
            session["depth"] += 1
            session["max_depth"] = max(session.get("max_depth", 0), session["depth"])
        elif session["depth"] > 0:
            session["depth"] -= 1
            session["current_focus"] = self.identify_new_focus(session)

        if len(session["questions"]) >= MAX_SOCRATIC_QUESTIONS or self.should_conclude(session):
            next_question = self.synthesis_question(session)
            session["is_complete"] = True
        else:
            next_question = self.generate_question(session, current)

        session["questions"].append(next_question)
        session["current_question_index"] = index + 1

        return {
            "session_id": session["id"],
            "question": next_question,
            "insights": insights,
            "suggestions": self.connection_suggestions(session),
            "progress": self.progress(session),
            "is_complete": session["is_complete"],
        }

    # ------------------------------------------------------------------
    # Question generation
    # ------------------------------------------------------------------

    def _question(self, session: dict, text: str, kind: str, category: str,
                  hints: list[str] | None = None, is_final: bool = False) -> dict:
        question = {
            "id": f"q_{len(session['questions'])}",
            "text": text,
            "type": kind,
            "category": category,
            "question_time": self.clock(),
            "depth": session["depth"],
            "is_final": is_final,
        }
        if hints:
            question["hints"] = list(hints)
        return question

    def generate_question(self, session: dict, last_question: dict | None) -> dict:
        mode = session.get("mode", "adaptive")
        if mode == "exploration":
            return self.exploration_question(session)
        if mode == "clarification":
            return self.clarification_question(session, last_question)
        if mode == "challenge":
            return self.challenge_question(session)
        if mode == "synthesis":
            return self.synthesis_question(session)
        return self.adaptive_question(session, last_question)

    def exploration_question(self, session: dict) -> dict:
        focus = session["current_focus"] or session["topic"]
        template = self.rng.choice(EXPLORATION_TEMPLATES)
        related = ""
        if "{related}" in template:
            related = self.find_related_concept(focus, session["graph_data"])
        text = template.format(focus=focus, related=related)
        return self._question(session, text, "exploration", "discovery", EXPLORATION_HINTS)

    def clarification_question(self, session: dict, last_question: dict | None) -> dict:
        key_term = session["current_focus"]
        if last_question and last_question.get("answer"):
            key_term = extract_key_term(last_question["answer"])
        text = self.rng.choice(CLARIFICATION_TEMPLATES).format(focus=key_term)
        return self._question(session, text, "clarification", "definition")

    def challenge_question(self, session: dict) -> dict:
        text = self.rng.choice(CHALLENGE_TEMPLATES).format(focus=session["current_focus"])
        return self._question(session, text, "challenge", "critical", CHALLENGE_HINTS)

    def synthesis_question(self, session: dict) -> dict:
        text = self.rng.choice(SYNTHESIS_TEMPLATES).format(topic=session["topic"])
        return self._question(session, text, "synthesis", "conclusion", is_final=True)

    def adaptive_question(self, session: dict, last_question: dict | None) -> dict:
        depth = session["depth"]
        if depth == 0:
            return self.exploration_question(session)
        if depth < 3:
            if self.rng.random() < 0.5:
                return self.clarification_question(session, last_question)
            return self.exploration_question(session)
        if self.rng.random() < 0.3:
            return self.challenge_question(session)
        return self.clarification_question(session, last_question)

    def find_related_concept(self, focus: str, graph: GraphData) -> str:
        lower = focus.lower()
        for edge in graph.get("edges") or []:
            if edge["from"].lower() == lower:
                return edge["to"]
            if edge["to"].lower() == lower:
                return edge["from"]

        labels = [node.get("label", node["id"]) for node in graph.get("nodes") or []]
        others = [label for label in labels if label.lower() != lower]
        if others:
            return self.rng.choice(others)
        return "un autre aspect"

    # ------------------------------------------------------------------
    # Answer analysis
    # ------------------------------------------------------------------

    def analyze_answer(self, answer: str, session: dict) -> list[str]:
        insights = []
        new_concepts = extract_new_concepts(answer, session["graph_data"])
        if new_concepts:
            insights.append(f"Nouveaux concepts identifiés : {', '.join(new_concepts)}")
        if contains_any(answer, CAUSAL_WORDS):
            insights.append("Relation causale détectée")
        if contains_any(answer, HEDGE_WORDS):
            insights.append("Zone d'incertitude identifiée - opportunité d'exploration")
        if has_contradiction(answer):
            insights.append("Tension conceptuelle détectée - à clarifier")
        return insights

    def should_deepen(self, answer: str, session: dict) -> bool:
        depth = session["depth"]
        if len(answer) < 50 and depth < 3:
            return True
        if contains_any(answer.lower(), UNCERTAINTY_WORDS):
            return True
        return len(extract_new_concepts(answer, session["graph_data"])) > 2 and depth < 4

    def should_conclude(self, session: dict) -> bool:
        if len(session["questions"]) >= CONCLUDE_AFTER_QUESTIONS:
            return True
        if session["depth"] >= CONCLUDE_AT_DEPTH:
            return True
        if self.clock() - session["start_time"] > CONCLUDE_AFTER_SECONDS:
            return True
        return self.is_repetitive(session)

    def is_repetitive(self, session: dict) -> bool:
        """The two latest answers name exactly the same concepts."""
        if len(session["questions"]) < 4:
            return False
        answered = _answered(session)
        if len(answered) < 2:
            return False
        latest = set(extract_concepts(answered[-1]["answer"]))
        before = set(extract_concepts(answered[-2]["answer"]))
        return bool(latest) and latest == before

    def identify_focus(self, graph: GraphData, topic: str) -> str:
        if not topic:
            return find_central_label(graph)
        lower = topic.lower()
        for node in graph.get("nodes") or []:
            label = node.get("label", "")
            if lower in label.lower():
                return label
        return topic

    def identify_new_focus(self, session: dict) -> str:
        """Most mentioned concept across answers other than the current focus."""
        counts: dict[str, int] = {}
        for question in _answered(session):
            for concept in extract_concepts(question["answer"]):
                counts[concept] = counts.get(concept, 0) + 1

        focus = session["current_focus"]
        best = 0
        new_focus = focus
        for concept, count in counts.items():
            if concept != focus and count > best:
                best = count
                new_focus = concept
        return new_focus

    def connection_suggestions(self, session: dict) -> list[dict]:
        """Pairs of concepts mentioned in the same answer and not yet linked."""
        suggestions = []
        graph = session["graph_data"]
        for number, question in enumerate(session["questions"], start=1):
            answer = question.get("answer")
            if not answer:
                continue
            if "cause" in answer or "parce que" in answer:
                relation = "cause"
            elif "similaire" in answer or "comme" in answer:
                relation = "similaire à"
            else:
                relation = "lié à"

            concepts = extract_concepts(answer)
            for i in range(len(concepts) - 1):
                for j in range(i + 1, len(concepts)):
                    if connection_exists(concepts[i], concepts[j], graph):
                        continue
                    suggestions.append({
                        "from": concepts[i],
                        "to": concepts[j],
                        "reason": f"Mentionnés ensemble dans la question {number}",
                        "impact": "medium",
                        "suggested_relation": relation,
                    })
                    if len(suggestions) >= MAX_CONNECTION_SUGGESTIONS:
                        return suggestions
        return suggestions

    # ------------------------------------------------------------------
    # Progress and summary
    # ------------------------------------------------------------------

    def progress(self, session: dict) -> dict:
        asked = len(session["questions"])
        if session.get("is_complete"):
            score = 100
        else:
            score = int(
                asked / MAX_SOCRATIC_QUESTIONS * 40
                + session["depth"] / CONCLUDE_AT_DEPTH * 30
                + len(session["insights"]) / 10 * 30
            )
            score = min(score, 100)

        if asked <= 3:
            phase = "Exploration"
        elif asked <= 7:
            phase = "Approfondissement"
        elif asked <= 12:
            phase = "Clarification"
        else:
            phase = "Synthèse"

        return {
            "questions_asked": asked,
            "current_depth": session["depth"],
            "insights_gained": len(session["insights"]),
            "concepts_explored": self.count_explored_concepts(session),
            "completion_score": score,
            "phase": phase,
        }

    def count_explored_concepts(self, session: dict) -> int:
        concepts = set()
        for question in _answered(session):
            concepts.update(extract_concepts(question["answer"]))
        return len(concepts)

    def summary(self, session: dict) -> dict:
        frequency: dict[str, int] = {}
        for question in _answered(session):
            for concept in extract_concepts(question["answer"]):
                frequency[concept] = frequency.get(concept, 0) + 1

        max_depth = max(
            [session.get("max_depth", 0), session["depth"]]
            + [q.get("depth", 0) for q in session["questions"]]
        )
        return {
            "session_id": session["id"],
            "topic": session["topic"],
            "duration": round(self.clock() - session["start_time"]),
            "total_questions": len(session["questions"]),
            "max_depth_reached": max_depth,
            "key_concepts": [concept for concept, count in frequency.items() if count > 1],
            "key_insights": list(session["insights"]),
            "discovered_connections": self.connection_suggestions(session),
            "suggested_follow_up": self.follow_up_questions(session),
            "quality_score": self.quality_score(session),
        }

    def follow_up_questions(self, session: dict) -> list[str]:
        questions = []
        if session["insights"]:
            questions.append("Comment pourriez-vous valider ou réfuter les insights découverts ?")
        if session["depth"] < 3:
            questions.append(
                f"Quels aspects de '{session['topic']}' restent encore flous "
                f"ou méritent une exploration plus approfondie ?"
            )
        all_answers = " ".join(q["answer"] for q in _answered(session))
        new_concepts = extract_new_concepts(all_answers, session["graph_data"])
        if new_concepts:
            questions.append(
                f"Comment le concept de '{new_concepts[0]}' s'intègre-t-il dans votre compréhension globale ?"
            )
        if not questions:
            questions.append("Quelle est la question la plus importante qui reste sans réponse pour vous ?")
        return questions

    def quality_score(self, session: dict) -> int:
        """Participation 30, answer length 30, insights 20, depth 20."""
        score = 0
        answered = _answered(session)
        if answered:
            score += len(answered) * 30 // len(session["questions"])
            average_length = sum(len(q["answer"]) for q in answered) // len(answered)
            score += 30 if average_length > 100 else average_length * 30 // 100

        insight_count = len(session["insights"])
        score += 20 if insight_count > 5 else insight_count * 20 // 5

        max_depth = max((q.get("depth", 0) for q in session["questions"]), default=0)
        score += 20 if max_depth > 3 else max_depth * 20 // 3
        return score
