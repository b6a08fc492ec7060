from dataclasses import dataclass

from .constants import (
    DELETED_USER_ID,
    DELETED_USER_NAME,
    WHITE_WINS,
    BLACK_WINS,
    DRAW,
    WIN_SCORE,
    DRAW_SCORE,
)
from .rounds import is_pending


@dataclass
class PlayerStanding:
    player_id: int
    name: str
    rating: int = None
    points: float = 0.0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    games_played: int = 0

    def as_dict(self):
        return {
            'playerId': self.player_id,
            'playerName': self.name,
            'rating': self.rating,
            'points': self.points,
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
            'gamesPlayed': self.games_played,
        }


def display_name(player_id, user=None) -> str:
    """Name shown for a player in standings and pairings.

    Purged accounts point at the reserved identity and soft-deleted accounts
    keep their row, but neither shows the original name.
    """
    if player_id == DELETED_USER_ID:
        return DELETED_USER_NAME
    if user is None:
        return f'Player {player_id}'
    if getattr(user, 'is_deleted', False):
        return f'Player {player_id} (removed)'
    return user.name


def _score(row: PlayerStanding, outcome: str):
    row.games_played += 1
    if outcome == 'win':
        row.points += WIN_SCORE
        row.wins += 1
    elif outcome == 'loss':
        row.losses += 1
    else:
        row.points += DRAW_SCORE
        row.draws += 1


def compute_standings(matches, players=None) -> list:
    """Aggregate match results into a ranked list of ``PlayerStanding``.

    ``players`` optionally maps player ids to user records used for names and
    ratings. Every player seen in ``matches`` gets a row even if none of
    their games has finished. Ranking is points, then wins, both descending.
    Exact ties are listed by player id so the output never depends on the
    order matches were fetched in.
    """
    players = players or {}
    rows = {}

    def row_for(pid):
        if pid not in rows:
            user = players.get(pid)
            rows[pid] = PlayerStanding(
                player_id=pid,
                name=display_name(pid, user),
                rating=getattr(user, 'rating', None) if pid != DELETED_USER_ID else None,
            )
        return rows[pid]

    for m in matches:
        white = row_for(m.white_player_id)
        black = row_for(m.black_player_id)
        # A game between two purged players is not scored
        if is_pending(m) or white is black:
            continue
        if m.result == WHITE_WINS:
            _score(white, 'win')
            _score(black, 'loss')
        elif m.result == BLACK_WINS:
            _score(white, 'loss')
            _score(black, 'win')
        elif m.result == DRAW:
            _score(white, 'draw')
            _score(black, 'draw')

    return sorted(rows.values(), key=lambda r: (-r.points, -r.wins, r.player_id))
