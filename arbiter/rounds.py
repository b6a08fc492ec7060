"""Round eligibility: when the next round may be paired and when play is over.

Everything here works on a snapshot (a list) of the tournament's matches.
Match objects only need ``round`` and ``result`` attributes, so model rows
and plain records are both accepted.
"""
from dataclasses import dataclass

from .constants import ONGOING, PENDING_RESULTS
from .formats import max_rounds


def is_pending(match) -> bool:
    return not match.result or match.result in PENDING_RESULTS


def current_round(matches) -> int:
    return max((m.round for m in matches), default=0)


def matches_in_round(matches, number: int) -> list:
    return [m for m in matches if m.round == number]


def all_current_round_results_complete(matches) -> bool:
    rnd = current_round(matches)
    return not any(is_pending(m) for m in matches_in_round(matches, rnd))


def has_reached_max_rounds(fmt, participant_count: int, matches) -> bool:
    return current_round(matches) >= max_rounds(fmt, participant_count)


def can_generate_next_round(status, fmt, participant_count: int, matches) -> bool:
    if participant_count is None or participant_count < 2:
        return False
    return (
        status == ONGOING
        and all_current_round_results_complete(matches)
        and not has_reached_max_rounds(fmt, participant_count, matches)
    )


def is_tournament_completed(fmt, participant_count: int, matches) -> bool:
    """True once every allowed round is played and no game anywhere is pending."""
    if participant_count is None or participant_count < 2:
        return False
    return (
        has_reached_max_rounds(fmt, participant_count, matches)
        and not any(is_pending(m) for m in matches)
    )


@dataclass(frozen=True)
class RoundProgress:
    current_round: int
    max_rounds: int
    current_round_complete: bool
    reached_max_rounds: bool
    can_generate_next_round: bool
    completed: bool

    def as_dict(self):
        return {
            'currentRound': self.current_round,
            'maxRounds': self.max_rounds,
            'currentRoundComplete': self.current_round_complete,
            'hasReachedMaxRounds': self.reached_max_rounds,
            'canGenerateNextRound': self.can_generate_next_round,
            'isCompleted': self.completed,
        }


def round_progress(status, fmt, participant_count: int, matches) -> RoundProgress:
    matches = list(matches)
    return RoundProgress(
        current_round=current_round(matches),
        max_rounds=max_rounds(fmt, participant_count),
        current_round_complete=all_current_round_results_complete(matches),
        reached_max_rounds=has_reached_max_rounds(fmt, participant_count, matches),
        can_generate_next_round=can_generate_next_round(status, fmt, participant_count, matches),
        completed=is_tournament_completed(fmt, participant_count, matches),
    )
