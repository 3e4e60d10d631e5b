"""FastAPI HTTP server for the N4L editor backend."""

import logging
import os
import random
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core import (
    EditorConfig,
    N4LParser,
    GraphAnalyzer,
    TemporalAnalyzer,
    ConsistencyChecker,
    DensityAnalyzer,
    VersionHistory,
    JsonFilePersistence,
    SessionArchive,
    SocraticEngine,
    InvestigationGuide,
    N4LError,
    VersionNotFoundError,
    SessionNotFoundError,
    GenerationError,
    GraphData,
    extract_sentences,
)
from ..version import __version__
from .ollama import OllamaService
from .session_manager import SocraticSessionManager

# Configure logging
log_level = os.getenv("N4L_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================

class NodeModel(BaseModel):
    """Graph node; the label defaults to the id."""
    id: str
    label: str = ""
    context: str = ""


class EdgeModel(BaseModel):
    """Graph edge."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    from_: str = Field(..., alias="from", description="Source node id")
    to: str = Field(..., description="Target node id")
    label: str = ""
    type: str = Field("relation", description="'relation', 'equivalence' or 'group'")
    context: str = ""


class PositionModel(BaseModel):
    x: float
    y: float


class GraphModel(BaseModel):
    """Graph snapshot as exchanged with the editor."""
    nodes: list[NodeModel] = Field(default_factory=list)
    edges: list[EdgeModel] = Field(default_factory=list)
    positions: dict[str, PositionModel] | None = Field(None, description="Client layout, used by the density map")


class ExpansionConeRequest(BaseModel):
    node_id: str = Field(..., description="Center of the cone")
    depth: int = Field(..., ge=0, description="Maximum number of hops")
    graph_data: GraphModel


class FindClustersRequest(BaseModel):
    terms: list[str] = Field(..., description="Search terms matched against node labels")
    graph_data: GraphModel


class AnalyzePathRequest(BaseModel):
    path: list[str] = Field(..., description="Node ids along the path")
    notes: dict[str, list[str]] = Field(..., description="Notes grouped by context")


class AnalyzeClustersRequest(BaseModel):
    clusters: dict[str, list[str]]
    graph_data: GraphModel


class AnalyzeConeRequest(BaseModel):
    central_node: str
    nodes: list[NodeModel] = Field(default_factory=list)
    links: list[EdgeModel] = Field(default_factory=list)


class InvestigationRequest(BaseModel):
    step: str = Field("actors", description="Current guide step")
    graph_data: GraphModel = Field(default_factory=GraphModel)
    current_data: dict[str, list[str]] = Field(default_factory=dict, description="Notes grouped by context")


class SaveVersionRequest(BaseModel):
    graph_data: GraphModel
    previous_graph_data: GraphModel | None = Field(None, description="State the diff is computed against")
    description: str = ""


class VersionIdRequest(BaseModel):
    version_id: str


class CompareVersionsRequest(BaseModel):
    version1_id: str
    version2_id: str


class StartSocraticRequest(BaseModel):
    topic: str = ""
    context: str = ""
    graph_data: GraphModel = Field(default_factory=GraphModel)
    mode: str = Field("adaptive", description="exploration, clarification, challenge, synthesis or adaptive")


class SocraticAnswerRequest(BaseModel):
    session_id: str
    answer: str


class SessionDocument(BaseModel):
    """A Socratic session as saved by the client."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    start_time: float = 0.0
    topic: str = ""
    context: str = ""
    graph_data: GraphModel = Field(default_factory=GraphModel)
    questions: list[dict[str, Any]] = Field(default_factory=list)
    current_question_index: int = 0
    current_focus: str = ""
    insights: list[str] = Field(default_factory=list)
    depth: int = 0
    max_depth: int = 0
    mode: str = "adaptive"
    is_complete: bool = False


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    active_sessions: int
    versions: int


def to_graph(model: GraphModel) -> GraphData:
    """Plain GraphData dict from a request model."""
    graph = model.model_dump(by_alias=True, exclude_none=True)
    for node in graph["nodes"]:
        node["label"] = node["label"] or node["id"]
    return graph


async def read_text(request: Request) -> str:
    body = await request.body()
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Request body is not UTF-8 text")


# ============================================================================
# Global State
# ============================================================================

parser: N4LParser | None = None
analyzer: GraphAnalyzer | None = None
temporal: TemporalAnalyzer | None = None
checker: ConsistencyChecker | None = None
density: DensityAnalyzer | None = None
guide: InvestigationGuide | None = None
history: VersionHistory | None = None
sessions: SocraticSessionManager | None = None
ollama: OllamaService | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global parser, analyzer, temporal, checker, density, guide, history, sessions, ollama

    # Startup
    logger.info("Starting N4L editor backend...")
    config = EditorConfig.from_env()

    parser = N4LParser()
    analyzer = GraphAnalyzer(parser)
    temporal = TemporalAnalyzer()
    checker = ConsistencyChecker()
    density = DensityAnalyzer()
    guide = InvestigationGuide()
    history = VersionHistory(JsonFilePersistence(config.history_path))
    sessions = SocraticSessionManager(SocraticEngine(random.Random()), SessionArchive(config.sessions_dir))
    ollama = OllamaService(config.ollama_url, config.ollama_model, config.ollama_timeout)

    logger.info(f"Server ready (history: {config.history_path}, sessions: {config.sessions_dir}, model: {config.ollama_model})")

    yield

    # Shutdown
    logger.info("Server stopped")


# Create FastAPI app
app = FastAPI(
    title="N4L Editor Backend",
    description="Parsing, graph analysis, versioning and guided questioning for N4L notes",
    version=__version__,
    lifespan=lifespan
)


# ============================================================================
# Health
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "active_sessions": sessions.count() if sessions else 0,
        "versions": history.count() if history else 0,
    }


# ============================================================================
# Parsing
# ============================================================================

@app.post("/api/parse-n4l")
async def parse_n4l(request: Request):
    """Parse N4L text (raw body) into subjects and notes by context."""
    text = await read_text(request)
    try:
        return parser.parse(text)
    except Exception as e:
        logger.error(f"Error parsing N4L: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/extract-concepts")
async def extract_concepts(request: Request):
    """Split raw text (body) into sentences."""
    return extract_sentences(await read_text(request))


@app.post("/api/auto-extract-subjects")
async def auto_extract_subjects(request: Request):
    """Named entities of raw text (body), via the language model."""
    text = await read_text(request)
    try:
        return await ollama.extract_subjects(text)
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error extracting subjects: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/generate-n4l-from-text", response_class=PlainTextResponse)
async def generate_n4l_from_text(request: Request):
    """Convert raw text (body) into N4L notation with the language model."""
    text = await read_text(request)
    try:
        return await ollama.generate_n4l(text)
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=f"Erreur du service IA: {e}")
    except Exception as e:
        logger.error(f"Error generating N4L: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# Graph
# ============================================================================

@app.post("/api/graph-data")
async def graph_data(notes: dict[str, list[str]]):
    """Convert notes grouped by context into a graph."""
    try:
        return parser.parse_to_graph(notes)
    except Exception as e:
        logger.error(f"Error building graph: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/find-all-paths")
async def find_all_paths(notes: dict[str, list[str]]):
    """Every shortest path longer than one edge between node pairs."""
    try:
        return analyzer.find_all_paths(notes)
    except Exception as e:
        logger.error(f"Error finding paths: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/layered-graph")
async def layered_graph(request: GraphModel):
    """Graph arranged in semantic layers."""
    try:
        return analyzer.get_layered_graph(to_graph(request))
    except Exception as e:
        logger.error(f"Error building layered graph: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/analyze-path", response_class=PlainTextResponse)
async def analyze_path(request: AnalyzePathRequest):
    """Language-model reading of a path as a causal chain, correlation or contradiction."""
    try:
        return await ollama.analyze_path(request.path, request.notes)
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing path: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/graph/expansion-cone")
async def expansion_cone(request: ExpansionConeRequest):
    """Nodes within `depth` hops of a node and the edges between them."""
    try:
        node_ids, edges = analyzer.get_expansion_cone(request.node_id, request.depth, to_graph(request.graph_data))
        return {"node_ids": node_ids, "edges": edges}
    except Exception as e:
        logger.error(f"Error computing expansion cone: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/analyze-expansion-cone")
async def analyze_expansion_cone(request: AnalyzeConeRequest):
    try:
        nodes = [node.model_dump() for node in request.nodes]
        links = [link.model_dump(by_alias=True) for link in request.links]
        analysis = await ollama.analyze_expansion_cone(request.central_node, nodes, links)
        return {"analysis": analysis}
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=f"Erreur lors de l'analyse: {e}")
    except Exception as e:
        logger.error(f"Error analyzing expansion cone: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/find-clusters")
async def find_clusters(request: FindClustersRequest):
    """Clusters of nodes matching search terms and the paths linking them."""
    terms = [term.strip() for term in request.terms if term.strip()]
    if not terms:
        raise HTTPException(status_code=400, detail="Aucun terme de recherche fourni")

    try:
        clusters, paths = analyzer.find_clusters_and_paths(terms, to_graph(request.graph_data))
        return {"clusters": clusters, "paths": paths}
    except Exception as e:
        logger.error(f"Error finding clusters: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/analyze-clusters", response_class=PlainTextResponse)
async def analyze_clusters(request: AnalyzeClustersRequest):
    if not request.clusters:
        raise HTTPException(status_code=400, detail="Aucun cluster à analyser")

    try:
        return await ollama.analyze_clusters(request.clusters, to_graph(request.graph_data))
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=f"Erreur lors de l'analyse par l'IA: {e}")
    except Exception as e:
        logger.error(f"Error analyzing clusters: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# Analysis
# ============================================================================

@app.post("/api/analyze-graph", response_class=PlainTextResponse)
async def analyze_graph(request: GraphModel):
    """Language-model summary of the graph's facts."""
    try:
        return await ollama.analyze_graph(to_graph(request))
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing graph: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/detect-temporal-patterns")
async def detect_temporal_patterns(notes: dict[str, list[str]]):
    try:
        return temporal.detect_patterns(notes)
    except Exception as e:
        logger.error(f"Error detecting temporal patterns: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/check-consistency")
async def check_consistency(request: GraphModel):
    """Temporal cycles, contradictions and other semantic issues."""
    try:
        return checker.check(to_graph(request))
    except Exception as e:
        logger.error(f"Error checking consistency: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/generate-questions")
async def generate_questions(request: GraphModel):
    """Prioritized investigation questions about the graph."""
    try:
        return analyzer.generate_investigation_questions(to_graph(request))
    except Exception as e:
        logger.error(f"Error generating questions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/timeline-data")
async def timeline_data(notes: dict[str, list[str]]):
    """Chronological events found in the notes."""
    try:
        return temporal.get_timeline_events(notes)
    except Exception as e:
        logger.error(f"Error extracting timeline: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/investigation-mode")
async def investigation_mode(request: InvestigationRequest):
    """Current step of the guided investigation."""
    try:
        return guide.get_step(request.step, to_graph(request.graph_data), request.current_data)
    except Exception as e:
        logger.error(f"Error in investigation mode: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# Versions
# ============================================================================

@app.post("/api/save-version")
async def save_version(request: SaveVersionRequest):
    """Record a graph snapshot with its semantic diff."""
    previous = to_graph(request.previous_graph_data) if request.previous_graph_data else None
    try:
        return history.save_version(to_graph(request.graph_data), previous, request.description)
    except Exception as e:
        logger.error(f"Error saving version: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/version-history")
async def version_history():
    """All versions, newest first."""
    return history.list_versions()


@app.post("/api/restore-version")
async def restore_version(request: VersionIdRequest):
    try:
        return history.restore_version(request.version_id)
    except VersionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error restoring version: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/compare-versions")
async def compare_versions(request: CompareVersionsRequest):
    try:
        return history.compare_versions(request.version1_id, request.version2_id)
    except VersionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error comparing versions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/evolution-timeline")
async def evolution_timeline():
    return history.evolution_timeline()


@app.post("/api/delete-version")
async def delete_version(request: VersionIdRequest):
    try:
        history.delete_version(request.version_id)
        return {"status": "success", "version_id": request.version_id}
    except VersionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting version: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/clear-history")
async def clear_history():
    history.clear()
    return {"status": "success"}


# ============================================================================
# Density
# ============================================================================

@app.post("/api/density-map")
async def density_map(request: GraphModel):
    try:
        return density.calculate_density_map(to_graph(request))
    except Exception as e:
        logger.error(f"Error computing density map: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/conceptual-territories")
async def conceptual_territories(request: GraphModel):
    """Explored, unexplored and frontier territories."""
    try:
        return density.identify_territories(to_graph(request))
    except Exception as e:
        logger.error(f"Error identifying territories: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/exploration-suggestions")
async def exploration_suggestions(request: GraphModel):
    try:
        return density.generate_exploration_suggestions(to_graph(request))
    except Exception as e:
        logger.error(f"Error generating exploration suggestions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/density-metrics")
async def density_metrics(request: GraphModel):
    try:
        return density.calculate_density_metrics(to_graph(request))
    except Exception as e:
        logger.error(f"Error computing density metrics: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# Socratic dialogue
# ============================================================================

@app.post("/api/start-socratic")
async def start_socratic(request: StartSocraticRequest):
    """Open a dialogue session and return its first question."""
    try:
        return sessions.start(request.topic, to_graph(request.graph_data), request.mode, request.context)
    except Exception as e:
        logger.error(f"Error starting Socratic session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/process-socratic-answer")
async def process_socratic_answer(request: SocraticAnswerRequest):
    """Record an answer and return the next question with insights and progress."""
    try:
        return sessions.answer(request.session_id, request.answer)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing answer: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/socratic-summary")
async def socratic_summary(session_id: str):
    try:
        return sessions.summary(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error summarizing session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/socratic-history")
async def socratic_history(session_id: str):
    """Questions asked so far, with their answers."""
    try:
        return sessions.history(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/save-socratic-session")
async def save_socratic_session(request: SessionDocument):
    session = request.model_dump()
    session["graph_data"] = to_graph(request.graph_data)
    try:
        saved = sessions.save(session)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=400, detail=f"Invalid session id: {e.session_id}")
    except (N4LError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not saved:
        raise HTTPException(status_code=500, detail="Impossible de sauvegarder le fichier de session")
    return {"status": "success", "session_id": session["id"]}


@app.get("/api/load-socratic-session")
async def load_socratic_session(session_id: str):
    if not session_id:
        raise HTTPException(status_code=400, detail="ID de session manquant")
    try:
        return sessions.load(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error loading session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/socratic-suggestions")
async def socratic_suggestions(session_id: str):
    """Three model-suggested follow-up questions for an active session."""
    try:
        session = sessions.snapshot(session_id)
        return await ollama.suggest_socratic_questions(session["topic"], session["questions"])
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=f"Erreur de parsing des suggestions de l'IA: {e}")
    except Exception as e:
        logger.error(f"Error suggesting questions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/analyze-socratic-response")
async def analyze_socratic_response(request: SocraticAnswerRequest):
    """Model analysis of an answer: concepts, assumptions, contradictions."""
    try:
        session = sessions.snapshot(request.session_id)
        return await ollama.analyze_socratic_response(session["topic"], request.answer)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing response: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
