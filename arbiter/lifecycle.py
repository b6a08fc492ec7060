"""Tournament lifecycle: upcoming -> ongoing -> finished, plus cancelled.

Two things move the stored status. Reads recompute a date-based suggestion
(``recompute_status``), and organizers trigger explicit transitions guarded
by the ``check_*`` functions below. Every gate works on the canonical
``effective_status``: the stored value, except that an ``ongoing``
tournament whose rounds are all played reads as ``finished``.

The ``check_*`` functions raise ``AuthorizationError`` or
``PreconditionError`` and never modify anything.
"""
from dataclasses import dataclass, field
from datetime import datetime

from .constants import (
    UPCOMING,
    ONGOING,
    FINISHED,
    CANCELLED,
    TERMINAL_STATUSES,
    RESULTS,
    STATUSES,
)
from .errors import PreconditionError, ValidationError
from .formats import normalize_format
from .permissions import authorize, require, EDIT_ANY_TOURNAMENT
from . import rounds


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def status_for_date(start_date, end_date, today=None) -> str:
    """Status suggested by the calendar, ignoring time of day."""
    today = _as_date(today) or datetime.utcnow().date()
    start = _as_date(start_date)
    end = _as_date(end_date)
    if start is not None and today < start:
        return UPCOMING
    if end is not None and today > end:
        return FINISHED
    return ONGOING


def recompute_status(stored_status, start_date, end_date, today=None):
    """Return the status to persist, or None when the stored one stands.

    Finished and cancelled are sticky so a tournament that finished early
    because all rounds were played is never reopened by the calendar.
    """
    if stored_status in TERMINAL_STATUSES:
        return None
    suggested = status_for_date(start_date, end_date, today)
    if suggested == stored_status:
        return None
    return suggested


def effective_status(stored_status, completed: bool) -> str:
    if stored_status == ONGOING and completed:
        return FINISHED
    return stored_status


@dataclass
class Snapshot:
    """The most recently fetched state of one tournament."""

    tournament: object
    participant_count: int
    matches: list = field(default_factory=list)

    @property
    def status(self):
        return self.tournament.status

    @property
    def progress(self) -> rounds.RoundProgress:
        return rounds.round_progress(
            self.tournament.status,
            self.tournament.format,
            self.participant_count,
            self.matches,
        )

    @property
    def completed(self) -> bool:
        return rounds.is_tournament_completed(
            self.tournament.format, self.participant_count, self.matches
        )

    @property
    def effective_status(self) -> str:
        return effective_status(self.tournament.status, self.completed)


def check_status_value(status):
    if status not in STATUSES:
        raise ValidationError(f'Unknown tournament status: {status!r}.')


def check_start(actor, snap: Snapshot):
    authorize(actor, snap.tournament, 'start')
    if snap.effective_status != UPCOMING:
        raise PreconditionError('Only upcoming tournaments can be started.', 'invalid_status')
    if snap.participant_count < 2:
        raise PreconditionError(
            'At least 2 participants are needed to start.', 'not_enough_participants'
        )


def check_finish(actor, snap: Snapshot):
    authorize(actor, snap.tournament, 'finish')
    if snap.status != ONGOING:
        raise PreconditionError('Only ongoing tournaments can be finished.', 'invalid_status')


def check_cancel(actor, snap: Snapshot):
    authorize(actor, snap.tournament, 'cancel')
    if snap.effective_status not in (UPCOMING, ONGOING):
        raise PreconditionError(
            f'A {snap.effective_status} tournament cannot be cancelled.', 'invalid_status'
        )


def check_edit(actor, snap: Snapshot, fmt=None, max_participants=None):
    """Gate a tournament edit. ``fmt`` and ``max_participants`` are the new
    values when the edit touches them.

    Once rounds have been paired the format is fixed.
    """
    authorize(actor, snap.tournament, 'edit')
    if snap.effective_status == ONGOING:
        raise PreconditionError('Tournaments cannot be edited while ongoing.', 'invalid_status')
    if (
        fmt is not None
        and snap.matches
        and normalize_format(fmt) != normalize_format(snap.tournament.format)
    ):
        raise PreconditionError(
            'The format cannot change once rounds have been paired.', 'invalid_status'
        )
    if max_participants is not None and max_participants < snap.participant_count:
        raise PreconditionError(
            f'{snap.participant_count} players are already registered.', 'invalid_status'
        )


def check_delete(actor, snap: Snapshot):
    authorize(actor, snap.tournament, 'delete')
    if snap.effective_status in (ONGOING, FINISHED):
        raise PreconditionError(
            f'A {snap.effective_status} tournament cannot be deleted.', 'invalid_status'
        )


def check_generate_round(actor, snap: Snapshot):
    authorize(actor, snap.tournament, 'generate_round')
    if snap.status != ONGOING:
        raise PreconditionError('Rounds are only paired while ongoing.', 'invalid_status')
    if snap.participant_count < 2:
        raise PreconditionError(
            'At least 2 participants are needed to pair a round.', 'not_enough_participants'
        )
    if not rounds.all_current_round_results_complete(snap.matches):
        raise PreconditionError(
            f'Round {rounds.current_round(snap.matches)} still has pending results.',
            'pending_results',
        )
    if rounds.has_reached_max_rounds(snap.tournament.format, snap.participant_count, snap.matches):
        raise PreconditionError('All rounds have already been played.', 'max_rounds_reached')


def check_result_entry(actor, snap: Snapshot, result):
    authorize(actor, snap.tournament, 'enter_result')
    if result not in RESULTS:
        raise ValidationError(f'Unknown match result: {result!r}.')
    if snap.effective_status != ONGOING:
        raise PreconditionError(
            'Results can only be entered while the tournament is ongoing.', 'invalid_status'
        )


def check_status_write(actor, snap: Snapshot, status):
    """Direct status writes, used by admins to correct a tournament."""
    require(actor, EDIT_ANY_TOURNAMENT)
    check_status_value(status)
    if snap.status == CANCELLED and status != CANCELLED:
        raise PreconditionError('Cancelled tournaments cannot be reopened.', 'invalid_status')
