"""Store operations behind the HTTP routes.

Reads return model rows; mutations run the lifecycle and permission gates
first, so a rejected request leaves the database untouched. Callers own the
session and handle ``SQLAlchemyError``.
"""
from datetime import datetime

from .models import User, Tournament, Inscription, Match
from .constants import (
    UPCOMING,
    ONGOING,
    FINISHED,
    CANCELLED,
    NOT_STARTED,
    IN_PROGRESS,
    DELETED_USER_ID,
)
from .errors import NotFoundError, PreconditionError
from . import lifecycle
from . import permissions
from .pairing import pair_round
from .rounds import current_round
from .standings import compute_standings


def get_or_404(session, model, ident):
    obj = session.get(model, ident)
    if obj is None:
        raise NotFoundError(f'{model.__name__} {ident} not found.')
    return obj


def participant_count(session, t: Tournament) -> int:
    return session.query(Inscription).filter_by(tournament_id=t.id).count()


def matches_for_tournament(session, tid):
    return session.query(Match).filter_by(tournament_id=tid).order_by(Match.round, Match.id).all()


def matches_for_round(session, tid, number):
    return session.query(Match).filter_by(tournament_id=tid, round=number).order_by(Match.id).all()


def matches_for_player(session, pid):
    return (
        session.query(Match)
        .filter((Match.white_player_id == pid) | (Match.black_player_id == pid))
        .order_by(Match.tournament_id, Match.round, Match.id)
        .all()
    )


def snapshot(session, t: Tournament) -> lifecycle.Snapshot:
    return lifecycle.Snapshot(
        tournament=t,
        participant_count=participant_count(session, t),
        matches=matches_for_tournament(session, t.id),
    )


def refresh_status(session, t: Tournament, today=None) -> bool:
    """Persist the calendar-derived status when it applies."""
    new_status = lifecycle.recompute_status(t.status, t.start_date, t.end_date, today)
    if new_status is None:
        return False
    t.status = new_status
    session.commit()
    return True


def users_by_id(session, ids):
    ids = {i for i in ids if i != DELETED_USER_ID}
    if not ids:
        return {}
    return {u.id: u for u in session.query(User).filter(User.id.in_(ids)).all()}


def players_for_matches(session, matches):
    ids = set()
    for m in matches:
        ids.add(m.white_player_id)
        ids.add(m.black_player_id)
    return users_by_id(session, ids)


def standings_for(session, t: Tournament):
    matches = matches_for_tournament(session, t.id)
    return compute_standings(matches, players_for_matches(session, matches))


# ---------- Lifecycle ----------

def start_tournament(session, actor, t: Tournament, now=None):
    """Move an upcoming tournament to ongoing and pair round 1.

    Starting ahead of schedule moves the start date to now, otherwise the
    calendar would report the tournament as upcoming again on the next read.
    The status change and the round 1 matches are committed together.
    """
    now = now or datetime.utcnow()
    lifecycle.check_start(actor, snapshot(session, t))
    if t.start_date is None or t.start_date > now:
        t.start_date = now
    t.status = ONGOING
    created = pair_round(t, 1, session)
    session.commit()
    return created


def finish_tournament(session, actor, t: Tournament):
    lifecycle.check_finish(actor, snapshot(session, t))
    t.status = FINISHED
    session.commit()
    return t


def cancel_tournament(session, actor, t: Tournament):
    lifecycle.check_cancel(actor, snapshot(session, t))
    t.status = CANCELLED
    session.commit()
    return t


def set_status(session, actor, t: Tournament, status):
    lifecycle.check_status_write(actor, snapshot(session, t), status)
    t.status = status
    session.commit()
    return t


def generate_next_round(session, actor, t: Tournament):
    snap = snapshot(session, t)
    lifecycle.check_generate_round(actor, snap)
    number = current_round(snap.matches) + 1
    created = pair_round(t, number, session)
    session.commit()
    return number, created


def update_match_result(session, actor, m: Match, result):
    lifecycle.check_result_entry(actor, snapshot(session, m.tournament), result)
    m.result = result
    session.commit()
    return m


def start_match(session, actor, m: Match):
    lifecycle.check_result_entry(actor, snapshot(session, m.tournament), IN_PROGRESS)
    if m.result != NOT_STARTED:
        raise PreconditionError('Only matches that have not started can be started.', 'invalid_status')
    m.result = IN_PROGRESS
    session.commit()
    return m


# ---------- Inscriptions ----------

def inscribe(session, actor, t: Tournament, user: User, now=None):
    """Sign ``user`` up for ``t``. Signing up someone else needs inscription rights."""
    now = now or datetime.utcnow()
    permissions.require(actor, permissions.JOIN_TOURNAMENTS)
    if user.id != actor.id:
        permissions.authorize(actor, t, 'manage_inscriptions')
    if user.is_deleted:
        raise PreconditionError('Removed players cannot sign up.', 'invalid_player')
    if t.status != UPCOMING:
        raise PreconditionError('Registration is only open before the tournament starts.', 'invalid_status')
    if session.query(Inscription).filter_by(tournament_id=t.id, user_id=user.id).first():
        raise PreconditionError('Already registered for this tournament.', 'already_registered')
    if t.registration_deadline and now >= t.registration_deadline:
        raise PreconditionError('The registration deadline has passed.', 'registration_closed')
    if t.max_participants and participant_count(session, t) >= t.max_participants:
        raise PreconditionError('The tournament is full.', 'tournament_full')
    ins = Inscription(tournament_id=t.id, user_id=user.id)
    session.add(ins)
    session.commit()
    return ins


def cancel_inscription(session, actor, ins: Inscription):
    t = ins.tournament
    if ins.user_id == getattr(actor, 'id', None):
        permissions.require(actor, permissions.JOIN_TOURNAMENTS)
    else:
        permissions.authorize(actor, t, 'manage_inscriptions')
    if t.status != UPCOMING:
        raise PreconditionError('Inscriptions can only be cancelled before the start.', 'invalid_status')
    session.delete(ins)
    session.commit()


# ---------- Users ----------

def soft_delete_user(session, actor, user: User):
    permissions.require(actor, permissions.MANAGE_USERS)
    user.is_deleted = True
    user.deleted_at = datetime.utcnow()
    session.commit()
    return user


def purge_user(session, actor, user: User):
    """Remove an account for good, keeping its games under the reserved identity.

    Players registered in an ongoing tournament can only be soft deleted.
    """
    permissions.require(actor, permissions.MANAGE_USERS)
    running = sorted(ins.tournament_id for ins in user.inscriptions if ins.tournament.status == ONGOING)
    if running:
        raise PreconditionError(
            f'Player is registered in ongoing tournaments {running}; use a soft delete.',
            'player_in_ongoing_tournament',
        )
    session.query(Match).filter_by(white_player_id=user.id).update(
        {Match.white_player_id: DELETED_USER_ID}, synchronize_session=False
    )
    session.query(Match).filter_by(black_player_id=user.id).update(
        {Match.black_player_id: DELETED_USER_ID}, synchronize_session=False
    )
    for ins in list(user.inscriptions):
        session.delete(ins)
    session.delete(user)
    session.commit()
