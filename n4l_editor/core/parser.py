"""N4L notation parser: free-form note text to normalized notes and graph."""

import logging
import re

from .constants import (
    SEQUENCE_CONTEXTS,
    SKIPPED_PREFIXES,
    SUBJECT_TRIM_CHARS,
    GROUP_EDGE_LABEL,
    DEFAULT_CONTEXT,
    EDGE_RELATION,
    EDGE_EQUIVALENCE,
    EDGE_GROUP,
)
from .types import Edge, GraphData, ParseResult
from .utils import edge_storage_key, is_valid_subject, is_capitalized, unique

logger = logging.getLogger(__name__)

CONTEXT_RE = re.compile(r"^:{2,}\s*(.*?)\s*:{2,}$")
RELATION_RE = re.compile(r"^(.*) -> (.*) -> (.*)$")
EQUIVALENCE_RE = re.compile(r"^(.*) <-> (.*)$")
GROUP_RE = re.compile(r"^(.*) => {(.*)}$")
PARENTHESES_RE = re.compile(r"^([^()]+)\s*\(([^)]+)\)\s*(.+)$")
ANNOTATION_RE = re.compile(r'>"([^"]+)"')
REFERENCE_RE = re.compile(r"\$(\w+)\.(\d+)")
ALT_EQUIVALENCE_RE = re.compile(r"^(.+)\s*\(=\)\s*(.+)$")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]\s*")

RESOLVED_REFERENCES = ("goal", "PREV")


def extract_first_subject(note: str) -> str:
    """Return the first token longer than 2 chars that is not an arrow."""
    for part in note.split():
        part = part.strip("\"'")
        if len(part) > 2 and "->" not in part and "<->" not in part:
            return part
    return ""


def extract_sentences(text: str) -> list[str]:
    """Split raw text into trimmed, non-empty sentences."""
    return [s.strip() for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]


def clean_generated_n4l(text: str) -> str:
    """Strip the markdown fences a model wraps generated notation in."""
    cleaned = text.strip()
    for fence in ("```n4l", "```"):
        cleaned = cleaned.removeprefix(fence)
    cleaned = cleaned.removesuffix("```")
    return cleaned.strip()


def _split_children(raw: str) -> list[str]:
    children = (child.strip().strip('"') for child in raw.split(";"))
    return [child for child in children if child]


def build_path_story(path: list[str], notes: dict[str, list[str]]) -> str:
    """
    Narrate a path as numbered facts, one per consecutive node pair.

    Each fact is the first relation or group note linking the pair in
    either direction. Pairs without such a note are skipped.
    """
    lines = []
    for i, (from_node, to_node) in enumerate(zip(path, path[1:]), start=1):
        fact = _find_linking_note(from_node, to_node, notes)
        if fact:
            lines.append(f"Fait {i}: {fact}.")
    return "\n".join(lines) + ("\n" if lines else "")


def _find_linking_note(a: str, b: str, notes: dict[str, list[str]]) -> str | None:
    pair = {a, b}
    for note_list in notes.values():
        for note in note_list:
            if match := RELATION_RE.match(note):
                if {match.group(1).strip(), match.group(3).strip()} == pair:
                    return note
            elif match := GROUP_RE.match(note):
                parent = match.group(1).strip()
                for child in _split_children(match.group(2)):
                    if {parent, child} == pair:
                        return note
    return None


class N4LParser:
    """
    Line-oriented parser for the N4L note notation.

    Stateless between calls: each parse() starts in the default context
    with no last subject.
    """

    def parse(self, text: str) -> ParseResult:
        """
        Parse note text into subjects and per-context normalized notes.

        Returns {"subjects": [...], "notes": {context: [line, ...]}}.
        """
        notes: dict[str, list[str]] = {}
        subjects: list[str] = []
        current_context = DEFAULT_CONTEXT
        last_subject = ""

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or line.startswith(SKIPPED_PREFIXES):
                continue

            if match := CONTEXT_RE.match(line):
                name = match.group(1).strip()
                if name not in SEQUENCE_CONTEXTS:
                    current_context = name
                    notes.setdefault(current_context, [])
                continue

            line, annotated = self._expand_annotations(line)
            subjects.extend(annotated)
            line = self._resolve_references(line, last_subject)

            context_notes = notes.get(current_context, [])
            note, found = self._parse_parentheses(line, last_subject, context_notes)
            if not note:
                note, found = self._parse_standard(line)

            if note:
                notes.setdefault(current_context, []).append(note)
                subjects.extend(found)
                if found:
                    last_subject = found[0]
                continue

            if not line.startswith("::"):
                for word in line.split():
                    word = word.strip(SUBJECT_TRIM_CHARS)
                    if len(word) > 2 and is_capitalized(word):
                        subjects.append(word)
                notes.setdefault(current_context, []).append(line)

        result_subjects = [s for s in unique(subjects) if is_valid_subject(s)]
        logger.debug(f"Parsed {sum(len(v) for v in notes.values())} notes in {len(notes)} contexts")
        return {"subjects": result_subjects, "notes": notes}

    def parse_to_graph(self, notes: dict[str, list[str]]) -> GraphData:
        """
        Build a graph from normalized notes.

        A node's context is the context of the last edge mentioning it.
        Unstructured notes contribute nothing.
        """
        node_contexts: dict[str, str] = {}
        edges: list[Edge] = []

        for context, note_list in notes.items():
            for note in note_list:
                cleaned, _ = self._expand_annotations(note)
                for edge in self._note_to_edges(cleaned, context):
                    edges.append(edge)
                    node_contexts[edge["from"]] = context
                    node_contexts[edge["to"]] = context

        nodes = [
            {"id": node_id, "label": node_id, "context": context}
            for node_id, context in node_contexts.items()
            if is_valid_subject(node_id)
        ]
        return {"nodes": nodes, "edges": edges}

    # ------------------------------------------------------------------
    # Line forms
    # ------------------------------------------------------------------

    def _expand_annotations(self, line: str) -> tuple[str, list[str]]:
        found = []
        for match in ANNOTATION_RE.finditer(line):
            line = line.replace(match.group(0), match.group(1))
            found.append(match.group(1))
        return line, found

    def _resolve_references(self, line: str, last_subject: str) -> str:
        for match in REFERENCE_RE.finditer(line):
            name = match.group(1)
            if name in RESOLVED_REFERENCES:
                replacement = last_subject or f"[REF:{name}]"
                line = line.replace(match.group(0), replacement)
        return line

    def _parse_parentheses(self, line: str, last_subject: str,
                           context_notes: list[str]) -> tuple[str, list[str]]:
        if match := PARENTHESES_RE.match(line):
            source, relation, target = (g.strip() for g in match.groups())

            if relation == "=":
                return self._parse_alt_equivalence(line)

            if source in ("", '"', '""'):
                if last_subject:
                    source = last_subject
                elif context_notes:
                    source = extract_first_subject(context_notes[-1])

            if source and source != '""' and target:
                source = source.strip('"')
                target = target.strip('"')
                return f"{source} -> {relation} -> {target}", [source, target]

        return self._parse_alt_equivalence(line)

    def _parse_alt_equivalence(self, line: str) -> tuple[str, list[str]]:
        if match := ALT_EQUIVALENCE_RE.match(line):
            source = match.group(1).strip().strip('"')
            target = match.group(2).strip().strip('"')
            if source and target:
                return f"{source} <-> {target}", [source, target]
        return "", []

    def _parse_standard(self, line: str) -> tuple[str, list[str]]:
        if match := RELATION_RE.match(line):
            return line, [match.group(1).strip(), match.group(3).strip()]

        if match := EQUIVALENCE_RE.match(line):
            return line, [match.group(1).strip(), match.group(2).strip()]

        if match := GROUP_RE.match(line):
            parent = match.group(1).strip()
            return line, [parent, *_split_children(match.group(2))]

        return "", []

    def _note_to_edges(self, note: str, context: str) -> list[Edge]:
        if match := RELATION_RE.match(note):
            source, label, target = (g.strip() for g in match.groups())
            source = source.removesuffix("]").removeprefix("[REF:")
            target = target.removesuffix("]").removeprefix("[REF:")
            if source and target:
                return [_make_edge(source, target, label, EDGE_RELATION, context)]
            return []

        if match := EQUIVALENCE_RE.match(note):
            source, target = match.group(1).strip(), match.group(2).strip()
            if source and target:
                return [_make_edge(source, target, "", EDGE_EQUIVALENCE, context)]
            return []

        if match := GROUP_RE.match(note):
            parent = match.group(1).strip()
            if not parent:
                return []
            return [
                _make_edge(parent, child, GROUP_EDGE_LABEL, EDGE_GROUP, context)
                for child in _split_children(match.group(2))
            ]

        return []


def _make_edge(source: str, target: str, label: str, edge_type: str, context: str) -> Edge:
    return {
        "id": edge_storage_key(source, target, label),
        "from": source,
        "to": target,
        "label": label,
        "type": edge_type,
        "context": context,
    }
