"""Prometheus metrics for the note engine.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge

# ---------------------------------------------------------------------------
# Repository metrics
# ---------------------------------------------------------------------------

NOTE_MUTATIONS = Counter(
    "markit_note_mutations_total",
    "Total number of committed note mutations",
    ["operation"],  # create, update, delete
)

NOTES_STORED = Gauge(
    "markit_notes_stored",
    "Number of notes currently held by the repository",
)

# ---------------------------------------------------------------------------
# Persistence metrics
# ---------------------------------------------------------------------------

PERSISTENCE_OPERATIONS = Counter(
    "markit_persistence_operations_total",
    "Total load/save operations against durable storage",
    ["operation", "outcome"],  # load: ok, absent, corrupt; save: ok, error
)

# ---------------------------------------------------------------------------
# Autosave metrics
# ---------------------------------------------------------------------------

AUTOSAVE_EVENTS = Counter(
    "markit_autosave_events_total",
    "Autosave scheduler resolutions",
    ["outcome"],  # commit, flush, discard, stale
)
