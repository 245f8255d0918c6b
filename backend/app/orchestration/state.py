"""Document progress state machine.

queued -> organizing -> generating_script -> generating_audio -> stitching -> complete,
with ``error`` reachable from any non-terminal state. ``complete`` and ``error``
are terminal and absorbing.
"""

from backend.app.models.document import DocumentStatus
from backend.app.models.jobs import Stage
from backend.app.orchestration.errors import IllegalTransitionError

ORDERED_STATUSES: tuple[DocumentStatus, ...] = (
    DocumentStatus.queued,
    DocumentStatus.organizing,
    DocumentStatus.generating_script,
    DocumentStatus.generating_audio,
    DocumentStatus.stitching,
    DocumentStatus.complete,
)

TERMINAL_STATUSES = frozenset({DocumentStatus.complete, DocumentStatus.error})

# Progress bands (inclusive); contract consumed by clients
PROGRESS_BANDS: dict[DocumentStatus, tuple[int, int]] = {
    DocumentStatus.queued: (0, 0),
    DocumentStatus.organizing: (0, 30),
    DocumentStatus.generating_script: (30, 60),
    DocumentStatus.generating_audio: (60, 90),
    DocumentStatus.stitching: (90, 100),
    DocumentStatus.complete: (100, 100),
}

STAGE_STATUSES: dict[Stage, tuple[DocumentStatus, ...]] = {
    Stage.content: (DocumentStatus.organizing,),
    Stage.script: (DocumentStatus.generating_script,),
    Stage.audio: (DocumentStatus.generating_audio, DocumentStatus.stitching),
}


def _build_transitions() -> dict[DocumentStatus, frozenset[DocumentStatus]]:
    table: dict[DocumentStatus, frozenset[DocumentStatus]] = {}
    for index, status in enumerate(ORDERED_STATUSES):
        if status in TERMINAL_STATUSES:
            table[status] = frozenset()
            continue
        allowed = {DocumentStatus.error, ORDERED_STATUSES[index + 1]}
        if status is not DocumentStatus.queued:
            # Idempotent re-run of the same stage
            allowed.add(status)
        table[status] = frozenset(allowed)
    table[DocumentStatus.error] = frozenset()
    return table


TRANSITIONS = _build_transitions()


def stage_of(status: DocumentStatus) -> Stage | None:
    """Return the stage that owns a working status, if any."""
    for stage, statuses in STAGE_STATUSES.items():
        if status in statuses:
            return stage
    return None


def is_terminal(status: DocumentStatus) -> bool:
    return status in TERMINAL_STATUSES


def check_transition(current: DocumentStatus, target: DocumentStatus) -> DocumentStatus:
    """Validate a status write and return the status to persist.

    A re-run stage asking for an earlier status of its own stage (e.g. an
    audio retry asking for ``generating_audio`` while at ``stitching``)
    keeps the current status instead of regressing.

    Raises:
        IllegalTransitionError: If the table does not allow the transition.
    """
    if target in TRANSITIONS[current]:
        return target

    owner = stage_of(current)
    if (
        owner is not None
        and stage_of(target) is owner
        and ORDERED_STATUSES.index(target) < ORDERED_STATUSES.index(current)
    ):
        return current

    raise IllegalTransitionError(f"Illegal status transition {current.value} -> {target.value}")


def clamp_to_band(status: DocumentStatus, progress: int) -> int:
    """Clamp a progress value into the band owned by ``status``."""
    low, high = PROGRESS_BANDS[status]
    return max(low, min(high, progress))


def stage_already_passed(status: DocumentStatus, stage: Stage) -> bool:
    """True when the document has moved beyond ``stage`` (duplicate job)."""
    if status is DocumentStatus.error:
        return False
    last_owned = STAGE_STATUSES[stage][-1]
    return ORDERED_STATUSES.index(status) > ORDERED_STATUSES.index(last_owned)
