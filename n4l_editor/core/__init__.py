"""Core N4L parsing, analysis and versioning components."""

from .types import Node, Edge, Position, GraphData, ParseResult, GraphMetrics, SemanticChange, SemanticVersion
from .constants import *
from .exceptions import *
from .config import EditorConfig
from .parser import N4LParser, extract_first_subject, extract_sentences, clean_generated_n4l, build_path_story
from .graph import connected_components, find_orphans, find_path, global_density
from .analyzer import GraphAnalyzer
from .temporal import TemporalAnalyzer
from .consistency import ConsistencyChecker
from .density import DensityAnalyzer
from .versioning import VersionHistory, calculate_metrics, detect_semantic_changes
from .persistence import JsonFilePersistence, SessionArchive
from .socratic import SocraticEngine
from .investigation import InvestigationGuide
from .utils import edge_storage_key, edge_pair_key, is_valid_subject

__all__ = [
    # Types
    "Node",
    "Edge",
    "Position",
    "GraphData",
    "ParseResult",
    "GraphMetrics",
    "SemanticChange",
    "SemanticVersion",
    # Constants
    "DEFAULT_CONTEXT",
    "HISTORY_FILE",
    "SESSIONS_DIR",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_OLLAMA_TIMEOUT",
    # Exceptions
    "N4LError",
    "VersionNotFoundError",
    "SessionNotFoundError",
    "GenerationError",
    # Classes
    "EditorConfig",
    "N4LParser",
    "GraphAnalyzer",
    "TemporalAnalyzer",
    "ConsistencyChecker",
    "DensityAnalyzer",
    "VersionHistory",
    "JsonFilePersistence",
    "SessionArchive",
    "SocraticEngine",
    "InvestigationGuide",
    # Functions
    "extract_first_subject",
    "extract_sentences",
    "clean_generated_n4l",
    "build_path_story",
    "connected_components",
    "find_orphans",
    "find_path",
    "global_density",
    "calculate_metrics",
    "detect_semantic_changes",
    # Utils
    "edge_storage_key",
    "edge_pair_key",
    "is_valid_subject",
]
