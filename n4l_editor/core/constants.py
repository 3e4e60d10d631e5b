"""Constants and heuristic tables for N4L analysis.

The keyword tables below are plain data. Analyzer classes take them as
constructor arguments so callers can swap vocabularies without touching
the algorithms.
"""

# Parsing
SEQUENCE_CONTEXTS = ("_sequence_", "sequence")
SKIPPED_PREFIXES = ("#", "+::", "-::")
INVALID_SUBJECTS = ("", '""', "[", "]")
SUBJECT_TRIM_CHARS = "\"'.,;:!?"
GROUP_EDGE_LABEL = "contient"
DEFAULT_CONTEXT = "general"

# Edge types
EDGE_RELATION = "relation"
EDGE_EQUIVALENCE = "equivalence"
EDGE_GROUP = "group"

# Temporal markers in match order: marker -> relation it suggests.
TEMPORAL_MARKERS = {
    "avant": "précède",
    "après": "suit",
    "puis": "puis",
    "ensuite": "ensuite",
    "pendant": "pendant",
    "durant": "durant",
    "alors que": "en parallèle de",
    "jusqu'à": "jusqu'à",
    "depuis": "depuis",
    "vers": "vers",
    "à": "à",
    "lorsque": "au moment où",
    "quand": "quand",
    "lendemain": "suit",
    "veille": "précède",
    "soirée": "pendant",
    "matin": "au début de",
    "soir": "à la fin de",
}

TEMPORAL_STOPWORDS = ("les", "une", "des", "dans", "sur", "avec", "pour", "par")

# Relation labels that order events in time (cycle detection)
TEMPORAL_RELATION_KEYWORDS = ("précède", "avant", "puis", "ensuite")

# Relation label pairs that contradict each other on the same node pair
ANTONYM_PAIRS = (
    ("cause", "empêche"),
    ("contient", "exclut"),
    ("précède", "suit"),
    ("identique", "différent"),
    ("ami", "ennemi"),
)

IMPORTANCE_KEYWORDS = (
    "principal", "important", "clé", "central", "critique", "essentiel",
    "critical", "key", "essential",
)

MIN_GROUP_SIZE_FOR_CHECK = 3
EQUIVALENCE_DIFF_THRESHOLD = 2

# Investigation questions
MAX_INVESTIGATION_QUESTIONS = 10
PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# Layered layout
LAYER_SPACING_X = 150
NODE_BASE_SIZE = 25
NODE_SIZE_PER_EDGE = 3

LAYERS = {
    "actors": {"name": "Acteurs", "y": 0, "color": "#3b82f6", "shape": "circle"},
    "locations": {"name": "Lieux", "y": 200, "color": "#10b981", "shape": "square"},
    "events": {"name": "Événements", "y": 400, "color": "#f59e0b", "shape": "diamond"},
    "evidence": {"name": "Preuves", "y": 600, "color": "#ef4444", "shape": "triangle"},
    "concepts": {"name": "Concepts", "y": 800, "color": "#8b5cf6", "shape": "box"},
}

LAYER_RULES = (
    # (layer, context words, label words); a capitalized single word is an actor first
    ("actors", ("personnage", "suspect"), ("victime", "témoin", "enquêteur", "detective")),
    ("locations", ("lieu",), ("scène", "maison", "bureau", "bibliothèque", "manoir", "jardin", "rue")),
    ("events", ("chronologie", "timeline"), ("arrivé", "découvert", "rencontré", "heure", "moment", "avant", "après")),
    ("evidence", ("preuve", "indice"), ("document", "trace", "empreinte", "tasse", "livre", "lettre")),
)
DEFAULT_LAYER = "concepts"

# Timeline keyword rules, first match wins: (keywords, importance, color, icon)
TIMELINE_RULES = (
    (("décès", "mort"), "high", "#ef4444", "💀"),
    (("découv", "corps"), "high", "#f97316", "🔍"),
    (("arrive", "visite"), "medium", "#3b82f6", "📍"),
    (("quitte", "part"), "medium", "#10b981", "🚪"),
    (("appel", "téléphone"), "medium", "#6366f1", "📞"),
    (("police", "détective", "enquête"), "medium", "#6366f1", "👮"),
    (("fenêtre", "ouvre"), "medium", "#6366f1", "🪟"),
    (("thé", "boit"), "medium", "#6366f1", "☕"),
)
TIMELINE_DEFAULT = ("medium", "#6366f1", "📅")

# Density analysis
GRID_SPACING = 100
EMPTY_ZONE_GRID = 200
ZONE_RADIUS_PADDING = 50
HIGH_DENSITY_COLOR = "#ef4444"
MEDIUM_DENSITY_COLOR = "#f59e0b"
LOW_DENSITY_COLOR = "#3b82f6"
ISOLATED_TERRITORY_OFFSET = 1000
DEFAULT_BALANCE_SCORE = 0.8

# Versioning
HISTORY_FILE = "versions_history.json"
SESSIONS_DIR = "sessions"
STRUCTURAL_COMPONENT_DELTA = 2
STRUCTURAL_DENSITY_DELTA = 0.3
EUREKA_MIN_INSIGHTS = 3
EUREKA_MIN_HIGH_IMPACT = 5
INSIGHT_MIN_HIGH_IMPACT = 3
INSIGHT_MIN_CHANGES = 5

# Socratic dialogue
SESSION_ID_PREFIX = "socratic_"
MAX_SOCRATIC_QUESTIONS = 15
CONCLUDE_AFTER_QUESTIONS = 10
CONCLUDE_AT_DEPTH = 5
CONCLUDE_AFTER_SECONDS = 20 * 60
MAX_CONNECTION_SUGGESTIONS = 5

COMMON_WORDS = frozenset((
    "le", "la", "les", "un", "une", "de", "du", "des", "et", "ou", "mais",
    "pour", "avec", "sans", "sur", "sous", "dans", "par", "que", "qui", "quoi",
    "être", "avoir", "faire", "dire", "aller", "voir", "savoir", "pouvoir", "comme",
    "c'est", "il", "elle", "nous", "vous", "ils", "elles", "sont", "est", "s'est",
))

# LLM client
DEFAULT_OLLAMA_URL = "http://localhost:11434/api/generate"
DEFAULT_OLLAMA_MODEL = "gpt-oss:20b"
DEFAULT_OLLAMA_TIMEOUT = 120.0
