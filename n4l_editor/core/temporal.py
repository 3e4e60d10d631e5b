"""Temporal pattern detection and timeline extraction from notes."""

import logging
import re
from datetime import datetime

from .constants import (
    TEMPORAL_MARKERS,
    TEMPORAL_STOPWORDS,
    TIMELINE_RULES,
    TIMELINE_DEFAULT,
)
from .parser import RELATION_RE, extract_first_subject

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r"(\d{1,2}h\d{0,2}|\d{1,2}:\d{2})")
DATE_RE = re.compile(r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|lendemain|veille|matin|soir|soirée|midi|minuit)")
TIMELINE_RE = re.compile(r"^(\d{2}/\d{2}/\d{4})\s+(\d{1,2}h\d{0,2})\s*->\s*([^->]+)\s*->\s*(.+)$")

WORD_TRIM_CHARS = ".,;:!?()[]{}\"'"


class TemporalAnalyzer:
    """Finds time-related phrasing in notes and suggests relations for it."""

    def __init__(self, markers: dict[str, str] = TEMPORAL_MARKERS,
                 stopwords=TEMPORAL_STOPWORDS, timeline_rules=TIMELINE_RULES):
        self.markers = markers
        self.stopwords = frozenset(stopwords)
        self.timeline_rules = timeline_rules

    # ========================================================================
    # Patterns
    # ========================================================================

    def detect_patterns(self, notes: dict[str, list[str]]) -> list[dict]:
        """
        Patterns of the form {"pattern", "occurrences", "suggestions"}.

        The first marker, in table order, found in a line claims that line.
        Clock times and date words are reported afterwards as their own
        "heure" and "date/moment" patterns.
        """
        patterns: list[dict] = []
        claimed: set[str] = set()

        for note_list in notes.values():
            for note in note_list:
                clean = note.strip()
                lower = clean.lower()
                if clean in claimed:
                    continue
                for marker, relation in self.markers.items():
                    if marker in lower:
                        claimed.add(clean)
                        _merge_pattern(patterns, {
                            "pattern": marker,
                            "occurrences": [clean],
                            "suggestions": self._marker_suggestions(clean, marker, relation),
                        })
                        break

        self._detect_times_and_dates(notes, patterns)
        return patterns

    def _marker_suggestions(self, text: str, marker: str, relation: str) -> list[str]:
        if match := RELATION_RE.match(text):
            source, target = match.group(1).strip(), match.group(3).strip()
            return [
                f"{source} -> {relation} -> {target}",
                f"Ajouter au contexte 'Chronologie': {text}",
            ]

        suggestions = []
        index = text.lower().find(marker)
        if index > 0:
            before = self._significant_words(text[:index])
            after = self._significant_words(text[index + len(marker):])
            if before and after:
                suggestions.append(f"{before[-1]} -> {relation} -> {after[0]}")

        suggestions.append(f"Annoter comme événement temporel avec '{marker}'")
        suggestions.append(f"Ajouter au contexte 'Chronologie': {text}")
        return suggestions

    def _significant_words(self, text: str) -> list[str]:
        words = (word.strip(WORD_TRIM_CHARS) for word in text.split())
        return [w for w in words if len(w) >= 3 and w.lower() not in self.stopwords]

    def _detect_times_and_dates(self, notes: dict[str, list[str]], patterns: list[dict]):
        for note_list in notes.values():
            for note in note_list:
                clean = note.strip()
                subject = extract_first_subject(clean)

                for time_match in TIME_RE.findall(clean):
                    suggestions = [f"Créer un événement temporel à {time_match}"]
                    if subject:
                        suggestions.append(f"{subject} -> se passe à -> {time_match}")
                    _merge_pattern(patterns, {
                        "pattern": "heure",
                        "occurrences": [clean],
                        "suggestions": suggestions,
                    })

                for date_match in DATE_RE.findall(clean):
                    suggestions = [f"Marquer '{date_match}' comme repère temporel"]
                    if subject:
                        suggestions.append(f"{subject} -> a lieu le -> {date_match}")
                    _merge_pattern(patterns, {
                        "pattern": "date/moment",
                        "occurrences": [clean],
                        "suggestions": suggestions,
                    })

    # ========================================================================
    # Timeline
    # ========================================================================

    def get_timeline_events(self, notes: dict[str, list[str]]) -> list[dict]:
        """
        Events from lines shaped "DD/MM/YYYY HHhMM -> actor -> action".

        Sorted by parsed datetime, falling back to encounter order.
        """
        events = []
        for context, note_list in notes.items():
            for note in note_list:
                note = note.strip()
                if not note or "---" in note:
                    continue
                match = TIMELINE_RE.match(note)
                if not match:
                    continue

                date_str, time_str, actor, action = match.groups()
                actor, action = actor.strip(), action.strip()
                order = len(events) + 1
                when = parse_event_datetime(date_str, time_str)
                importance, color, icon = self._classify_event(f"{actor} {action}".lower())

                events.append({
                    "id": f"event_{order}",
                    "raw_description": note,
                    "context": context,
                    "order": order,
                    "time": time_str,
                    "actor": actor,
                    "action": action,
                    "summary": f"{actor} → {action}",
                    "importance": importance,
                    "color": color,
                    "icon": icon,
                    "datetime": when.isoformat() if when else None,
                    "is_absolute": when is not None,
                    "_sort": when,
                })

        events.sort(key=lambda e: (e["_sort"] is None, e["_sort"] or datetime.min, e["order"]))
        for event in events:
            del event["_sort"]
        logger.debug(f"Extracted {len(events)} timeline events")
        return events

    def _classify_event(self, text: str) -> tuple[str, str, str]:
        for keywords, importance, color, icon in self.timeline_rules:
            if any(keyword in text for keyword in keywords):
                return importance, color, icon
        return TIMELINE_DEFAULT


def parse_event_datetime(date_str: str, time_str: str) -> datetime | None:
    """Parse "DD/MM/YYYY" plus "HHhMM"; keep the date alone if the time is partial."""
    clock = time_str.replace("h", ":", 1)
    try:
        return datetime.strptime(f"{date_str} {clock}", "%d/%m/%Y %H:%M")
    except ValueError:
        pass
    try:
        return datetime.strptime(date_str, "%d/%m/%Y")
    except ValueError:
        return None


def _merge_pattern(patterns: list[dict], new: dict):
    for existing in patterns:
        if existing["pattern"] == new["pattern"]:
            existing["occurrences"].extend(new["occurrences"])
            for suggestion in new["suggestions"]:
                if suggestion not in existing["suggestions"]:
                    existing["suggestions"].append(suggestion)
            return
    patterns.append(new)
