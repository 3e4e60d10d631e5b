"""Client for the Ollama text-generation API and the prompts built on it."""

import json
import logging

import httpx

from ..core.constants import DEFAULT_OLLAMA_URL, DEFAULT_OLLAMA_MODEL, DEFAULT_OLLAMA_TIMEOUT, EDGE_RELATION, EDGE_EQUIVALENCE, EDGE_GROUP
from ..core.exceptions import GenerationError
from ..core.parser import build_path_story, clean_generated_n4l
from ..core.types import GraphData

logger = logging.getLogger(__name__)


def clean_json(text: str) -> str:
    """Outermost {...} object in text, else outermost [...] array, else ""."""
    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end != -1 and start < end:
            return text[start:end + 1]
    return ""


def _load_json(text: str):
    cleaned = clean_json(text)
    if not cleaned:
        raise GenerationError(f"Model returned a non-JSON response: {text[:200]}")
    try:
        return json.loads(cleaned)
    except ValueError as e:
        raise GenerationError(f"Unable to parse model JSON: {e}")


# ============================================================================
# Prompts
# ============================================================================

N4L_GENERATION_PROMPT = """Tu es un expert en structuration de notes au format N4L (Notes for Loading).
Convertis le texte brut ci-dessous en un fichier N4L dense et interconnecté.

Syntaxe à utiliser :
- Contexte : ':: Nom du contexte ::', sous-contexte '::: Nom :::'
- Relation : 'Sujet -> relation -> Objet' ou 'Sujet (relation) Objet'
- Continuation du sujet précédent : une ligne commençant par '"'
- Équivalence : 'A <-> B' ou 'A (=) B'
- Groupe : 'Parent => {{ Enfant1; Enfant2 }}'
- Concept important : '>"concept"'
- Commentaire : ligne commençant par '#'
- Chronologie : bloc '+:: _timeline_ ::' ... '-:: _timeline_ ::' avec des lignes
  'JJ/MM/AAAA HHhMM -> événement -> détail'

Extrais toutes les entités (personnes, lieux, objets, concepts) avec leurs propriétés,
relie-les par des relations riches, organise les événements chronologiquement et
regroupe les éléments similaires.

TEXTE À ANALYSER :
---
{text}
---

Produis uniquement le contenu du fichier N4L, sans explication."""

SUBJECTS_PROMPT = """À partir du texte suivant, identifiez les entités nommées (personnes, lieux, objets).
Répondez uniquement avec un objet JSON contenant des listes pour chaque catégorie
(par exemple, {{"personnes": [...], "lieux": [...]}}). Le texte est : {text}"""

GRAPH_SUMMARY_PROMPT = """Vous êtes un assistant d'enquête intelligent.
En vous basant uniquement sur les faits suivants, rédigez un résumé de la situation.
Quels sont les points clés, les principaux suspects et les pistes à explorer ?
Soyez concis et direct.

{facts}"""

PATH_PROMPT = """Vous êtes un analyste sémantique.
La séquence de faits suivante représente un chemin logique découvert dans un graphe de connaissances :

{story}

Analysez cette séquence et déterminez s'il s'agit principalement d'une chaîne causale,
d'une simple corrélation, ou si elle révèle une possible contradiction.
Justifiez votre réponse en une ou deux phrases."""

CONE_INSTRUCTIONS = """Fournis une analyse détaillée de ce cône d'expansion en identifiant:
1. Les patterns et structures principales
2. Les clusters thématiques
3. Les nœuds pivots ou points de convergence
4. Les chemins de connaissance significatifs
5. Les insights sur l'organisation de l'information
6. Les recommandations pour l'exploration future

Format ta réponse en markdown avec des sections claires."""

SOCRATIC_SUGGESTIONS_PROMPT = """Basé sur cette conversation à propos de "{topic}":
{conversation}
Suggère 3 questions socratiques pertinentes pour continuer l'exploration. Réponds uniquement avec un tableau JSON de chaînes de caractères. Exemple : ["Question 1?", "Question 2?", "Question 3?"]"""

SOCRATIC_ANALYSIS_PROMPT = """Analyse en profondeur cette réponse dans le contexte d'un dialogue socratique sur "{topic}":

Réponse: "{answer}"

Identifie les concepts clés, les hypothèses sous-jacentes, et les contradictions ou tensions potentielles. Réponds uniquement avec un objet JSON avec les clés "concepts", "assumptions", "contradictions"."""


def graph_facts(graph: GraphData) -> str:
    """Render the edges of a graph as one fact per line."""
    lines = ["Faits connus :"]
    for edge in graph.get("edges") or []:
        if edge["type"] == EDGE_RELATION:
            lines.append(f"- {edge['from']} {edge['label']} {edge['to']}.")
        elif edge["type"] == EDGE_EQUIVALENCE:
            lines.append(f"- {edge['from']} est équivalent à {edge['to']}.")
        elif edge["type"] == EDGE_GROUP:
            lines.append(f"- Le groupe '{edge['from']}' contient {edge['to']}.")
    return "\n".join(lines)


# ============================================================================
# Service
# ============================================================================

class OllamaService:
    """
    Thin async wrapper over the Ollama /api/generate endpoint.

    Every failure surfaces as GenerationError; nothing is retried.
    """

    def __init__(self, url: str = DEFAULT_OLLAMA_URL, model: str = DEFAULT_OLLAMA_MODEL,
                 timeout: float = DEFAULT_OLLAMA_TIMEOUT, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.model = model
        self.timeout = timeout
        self.transport = transport

    async def generate(self, prompt: str, format_hint: str = "") -> str:
        """Send one non-streaming generation request and return the response text."""
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        if format_hint:
            payload["format"] = format_hint

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.TimeoutException:
            raise GenerationError(f"Ollama timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            raise GenerationError(f"Cannot connect to Ollama at {self.url}: {e}")

        if response.status_code != 200:
            raise GenerationError(f"Ollama returned an error (status {response.status_code}): {response.text}")

        try:
            body = response.json()
        except ValueError:
            raise GenerationError(f"Ollama returned a non-JSON body: {response.text[:200]}")

        text = body.get("response", "") if isinstance(body, dict) else ""
        if format_hint == "json":
            try:
                json.loads(text)
            except ValueError:
                raise GenerationError(f"Ollama returned invalid JSON for a JSON request: {text[:200]}")

        logger.debug(f"Ollama answered {len(text)} characters")
        return text

    async def extract_subjects(self, text: str) -> list[str]:
        data = _load_json(await self.generate(SUBJECTS_PROMPT.format(text=text), "json"))
        if isinstance(data, list):
            return [item for item in data if isinstance(item, str)]
        subjects = []
        for value in data.values():
            if isinstance(value, list):
                subjects.extend(item for item in value if isinstance(item, str))
        return subjects

    async def generate_n4l(self, text: str) -> str:
        return clean_generated_n4l(await self.generate(N4L_GENERATION_PROMPT.format(text=text)))

    async def analyze_graph(self, graph: GraphData) -> str:
        return await self.generate(GRAPH_SUMMARY_PROMPT.format(facts=graph_facts(graph)))

    async def analyze_path(self, path: list[str], notes: dict[str, list[str]]) -> str:
        return await self.generate(PATH_PROMPT.format(story=build_path_story(path, notes)))

    async def analyze_clusters(self, clusters: dict[str, list[str]], graph: GraphData) -> str:
        lines = [
            "Analyse les clusters de nœuds suivants et leur signification dans le contexte du graphe global.",
            "Sois concis et va droit au but. Explique ce que chaque cluster représente "
            "et comment ils sont liés les uns aux autres.",
            "",
        ]
        for name, members in clusters.items():
            lines.append(f"Cluster '{name}':")
            lines.extend(f"- {member}" for member in members)
        lines.append("")
        lines.append("Contexte du graphe global (relations):")
        lines.extend(f"- {e['from']} {e.get('label', '')} {e['to']}" for e in graph.get("edges") or [])
        return await self.generate("\n".join(lines))

    async def analyze_expansion_cone(self, central_node: str, nodes: list[dict], links: list[dict]) -> str:
        lines = [
            "Analyse le cône d'expansion suivant d'un graphe de connaissances.",
            "",
            f"NŒUD CENTRAL: {central_node}",
            "",
            "NŒUDS CONNECTÉS:",
        ]
        lines.extend(f"- {node['id']}" for node in nodes)
        lines.append("")
        lines.append("RELATIONS:")
        lines.extend(f"- {link['from']} → {link['to']} (type: {link.get('type', '')})" for link in links)
        lines.append("")
        lines.append(CONE_INSTRUCTIONS)
        return await self.generate("\n".join(lines))

    async def suggest_socratic_questions(self, topic: str, questions: list[dict]) -> list[str]:
        """Three follow-up questions from the latest exchanges of a dialogue."""
        # The last question is still unanswered; use the two answered before it
        recent = questions[max(len(questions) - 3, 0):-1] if questions else []
        conversation = "".join(f"Q: {q['text']}\nA: {q.get('answer', '')}\n\n" for q in recent)
        data = _load_json(await self.generate(SOCRATIC_SUGGESTIONS_PROMPT.format(topic=topic, conversation=conversation)))
        if not isinstance(data, list):
            raise GenerationError("Expected a JSON array of questions")
        return [item for item in data if isinstance(item, str)]

    async def analyze_socratic_response(self, topic: str, answer: str) -> dict:
        data = _load_json(await self.generate(SOCRATIC_ANALYSIS_PROMPT.format(topic=topic, answer=answer), "json"))
        if not isinstance(data, dict):
            raise GenerationError("Expected a JSON object")
        return data
