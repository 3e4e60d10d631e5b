"""Step-by-step investigation guide with graph-aware suggestions."""

import copy

from .graph import find_orphans
from .types import GraphData
from .utils import contains_any, is_capitalized, unique

FIRST_STEP = "actors"

INVESTIGATION_STEPS = {
    "actors": {
        "question": "Qui sont les acteurs principaux de votre enquête ?",
        "suggestions": ["Victime", "Suspect", "Témoin", "Enquêteur", "Expert"],
        "action_type": "subjects",
        "next_step": "locations",
        "tips": "Identifiez toutes les personnes impliquées, même indirectement.",
    },
    "locations": {
        "question": "Quels sont les lieux importants ?",
        "suggestions": ["Scène de crime", "Domicile", "Lieu de travail", "Lieu public"],
        "action_type": "subjects",
        "next_step": "timeline",
        "tips": "Notez tous les endroits mentionnés, ils peuvent révéler des connexions.",
    },
    "timeline": {
        "question": "Quelle est la chronologie des événements ?",
        "suggestions": [
            "avant -> précède -> après",
            "pendant -> simultané -> pendant",
            "cause -> entraîne -> conséquence",
        ],
        "action_type": "relations",
        "next_step": "motives",
        "tips": "Établissez l'ordre temporel pour comprendre la séquence causale.",
    },
    "motives": {
        "question": "Quels sont les mobiles identifiés ?",
        "suggestions": ["Argent", "Vengeance", "Jalousie", "Protection", "Secret"],
        "action_type": "subjects",
        "next_step": "evidence",
        "tips": "Un mobile fort peut révéler le coupable.",
    },
    "evidence": {
        "question": "Quelles preuves sont disponibles ?",
        "suggestions": ["Preuve physique", "Témoignage", "Document", "Enregistrement", "Trace numérique"],
        "action_type": "subjects",
        "next_step": "connections",
        "tips": "Cataloguez toutes les preuves, même celles qui semblent insignifiantes.",
    },
    "connections": {
        "question": "Comment relier les éléments entre eux ?",
        "suggestions": ["possède", "a rencontré", "connaît", "travaille avec", "est lié à"],
        "action_type": "relations",
        "next_step": "groups",
        "tips": "Cherchez les patterns et les connexions cachées.",
    },
    "groups": {
        "question": "Comment regrouper les éléments similaires ?",
        "suggestions": ["Suspects => {}", "Preuves => {}", "Lieux visités => {}", "Alibis => {}"],
        "action_type": "groups",
        "next_step": "complete",
        "tips": "Organisez vos découvertes en catégories logiques.",
    },
}

ACTOR_WORDS = ("suspect", "victime", "témoin")
LOCATION_WORDS = ("lieu", "scène", "maison", "bureau")
EVIDENCE_WORDS = ("preuve", "indice", "document", "trace")

MIN_ACTORS = 2
MAX_ISOLATED = 3


class InvestigationGuide:

    def __init__(self, steps=INVESTIGATION_STEPS):
        self.steps = steps

    def get_step(self, step: str, graph: GraphData, current_data: dict[str, list[str]] | None = None) -> dict:
        """The requested step (the first one when unknown), with contextual suggestions and tips."""
        result = copy.deepcopy(self.steps.get(step, self.steps[FIRST_STEP]))
        contextual = self.contextual_suggestions(step, graph, current_data or {})
        if contextual:
            result["suggestions"] = contextual + result["suggestions"]
        return self.adjust_tips(result, self.analyze_progress(graph), step)

    def contextual_suggestions(self, step: str, graph: GraphData, current_data: dict[str, list[str]]) -> list[str]:
        if step == "actors":
            # Proper nouns already present in the notes
            words = [
                word
                for notes in current_data.values()
                for note in notes
                for word in note.split()
                if len(word) > 2 and is_capitalized(word)
            ]
            return unique(words)
        if step == "connections":
            return [f"Connecter '{orphan}' au graphe" for orphan in find_orphans(graph)]
        return []

    def analyze_progress(self, graph: GraphData) -> dict:
        progress = {
            "actors_count": 0,
            "locations_count": 0,
            "evidence_count": 0,
            "relations_count": len(graph.get("edges") or []),
            "isolated_nodes": len(find_orphans(graph)),
        }
        for node in graph.get("nodes") or []:
            label = node.get("label", "")
            lower = label.lower()
            if contains_any(lower, ACTOR_WORDS) or is_capitalized(label):
                progress["actors_count"] += 1
            if contains_any(lower, LOCATION_WORDS):
                progress["locations_count"] += 1
            if contains_any(lower, EVIDENCE_WORDS):
                progress["evidence_count"] += 1
        return progress

    def adjust_tips(self, step: dict, progress: dict, current_step: str) -> dict:
        if progress["actors_count"] < MIN_ACTORS and current_step != FIRST_STEP:
            step["tips"] = "⚠️ Conseil: Ajoutez plus d'acteurs pour enrichir votre enquête. " + step["tips"]
        if progress["isolated_nodes"] > MAX_ISOLATED:
            step["tips"] = "⚠️ Attention: Vous avez plusieurs éléments isolés. Pensez à les connecter. " + step["tips"]
        return step
