from collections import defaultdict

from .models import Tournament, Inscription, Match, User
from .constants import ROUND_ROBIN, ELIMINATION, NOT_STARTED, WHITE_WINS, BLACK_WINS, DRAW, DEFAULT_RATING
from .formats import normalize_format
from .rounds import is_pending
from .standings import compute_standings


def inscribed_players(t: Tournament, session):
    return (
        session.query(User)
        .join(Inscription, Inscription.user_id == User.id)
        .filter(Inscription.tournament_id == t.id)
        .order_by(Inscription.id)
        .all()
    )


def tournament_matches(t: Tournament, session):
    return session.query(Match).filter_by(tournament_id=t.id).order_by(Match.round, Match.id).all()


def _seed_key(user):
    return (-(user.rating or DEFAULT_RATING), user.id)


def _played_pairs(matches):
    return {frozenset((m.white_player_id, m.black_player_id)) for m in matches}


def _color_history(matches):
    whites = defaultdict(int)
    last = {}
    for m in matches:
        whites[m.white_player_id] += 1
        last[m.white_player_id] = 'white'
        last[m.black_player_id] = 'black'
    return whites, last


def _assign_colors(a, b, whites, last):
    """Return (white, black). ``a`` is the higher ranked player."""
    if whites[a.id] != whites[b.id]:
        return (a, b) if whites[a.id] < whites[b.id] else (b, a)
    if last.get(a.id) == 'white' and last.get(b.id) != 'white':
        return b, a
    return a, b


def _build_pairs(players, played):
    """Pair players in order while avoiding rematches where possible."""
    memo = {}

    def conflicts(a, b):
        return 1 if frozenset((a.id, b.id)) in played else 0

    def helper(remaining):
        if not remaining:
            return 0, []
        key = tuple(p.id for p in remaining)
        if key in memo:
            return memo[key]
        first = remaining[0]
        rest = remaining[1:]
        best = None
        # Look a few places down the list; the best opponent is rarely further.
        for i in range(min(len(rest), 6)):
            opponent = rest[i]
            result = helper(rest[:i] + rest[i + 1:])
            total = conflicts(first, opponent) + result[0]
            if best is None or total < best[0]:
                best = (total, [(first, opponent)] + result[1])
                if total == 0:
                    break
        memo[key] = best
        return best

    return helper(players)[1]


def _sit_out(players, matches):
    """Pick the player left without a game when the field is odd.

    The lowest ranked player who has sat out the fewest times is chosen.
    """
    games = defaultdict(int)
    for m in matches:
        games[m.white_player_id] += 1
        games[m.black_player_id] += 1
    most = max(games[p.id] for p in players)
    for p in reversed(players):
        if games[p.id] == most:
            return p
    return players[-1]


def _create_matches(t, round_number, pairs, session):
    """Add the round's matches to the session. The caller commits."""
    created = []
    for white, black in pairs:
        m = Match(tournament_id=t.id, round=round_number, result=NOT_STARTED,
                  white_player_id=white.id, black_player_id=black.id)
        session.add(m)
        created.append(m)
    session.flush()
    return created


def swiss_pair_round(t: Tournament, round_number: int, session):
    players = inscribed_players(t, session)
    matches = tournament_matches(t, session)
    if round_number == 1 or not matches:
        players.sort(key=_seed_key)
        half = len(players) // 2
        pairs = []
        for i in range(half):
            top, bottom = players[i], players[i + half]
            pairs.append((top, bottom) if i % 2 == 0 else (bottom, top))
        return _create_matches(t, round_number, pairs, session)
    # Order by score, then rating
    points = {row.player_id: row.points for row in compute_standings(matches)}
    players.sort(key=lambda u: (-points.get(u.id, 0.0),) + _seed_key(u))
    if len(players) % 2 == 1:
        players.remove(_sit_out(players, matches))
    whites, last = _color_history(matches)
    pairs = [
        _assign_colors(a, b, whites, last)
        for a, b in _build_pairs(players, _played_pairs(matches))
    ]
    return _create_matches(t, round_number, pairs, session)


def _round_robin_pairs(order_ids, round_index):
    players = list(order_ids)
    if not players:
        return []
    if len(players) % 2 == 1:
        players.append(None)
    total = len(players)
    working = players
    for _ in range(round_index % (total - 1 if total > 1 else 1)):
        working = [working[0]] + [working[-1]] + working[1:-1]
    pairs = []
    half = total // 2
    for i in range(half):
        a = working[i]
        b = working[-1 - i]
        pairs.append((a, b))
    return pairs


def round_robin_pair_round(t: Tournament, round_number: int, session):
    players = inscribed_players(t, session)
    if not players:
        return []
    round_index = max(round_number - 1, 0)
    pairs = []
    for i, (a, b) in enumerate(_round_robin_pairs(players, round_index)):
        if a is None or b is None:
            continue
        pairs.append((a, b) if (round_index + i) % 2 == 0 else (b, a))
    return _create_matches(t, round_number, pairs, session)


def _eliminated(matches):
    out = set()
    for m in matches:
        if is_pending(m):
            continue
        if m.result == WHITE_WINS:
            out.add(m.black_player_id)
        elif m.result in (BLACK_WINS, DRAW):
            # Draws go to black, as in an Armageddon game.
            out.add(m.white_player_id)
    return out


def elimination_pair_round(t: Tournament, round_number: int, session):
    players = inscribed_players(t, session)
    matches = tournament_matches(t, session)
    out = _eliminated(matches)
    alive = sorted((p for p in players if p.id not in out), key=_seed_key)
    if len(alive) < 2:
        return []
    bracket = 1
    while bracket < len(alive):
        bracket *= 2
    # Top seeds get byes until the field is a power of two
    byes = bracket - len(alive)
    field = alive[byes:]
    pairs = []
    for i in range(len(field) // 2):
        high, low = field[i], field[-1 - i]
        pairs.append((high, low) if i % 2 == 0 else (low, high))
    return _create_matches(t, round_number, pairs, session)


def pair_round(t: Tournament, round_number: int, session):
    fmt = normalize_format(t.format)
    if fmt == ROUND_ROBIN:
        return round_robin_pair_round(t, round_number, session)
    if fmt == ELIMINATION:
        return elimination_pair_round(t, round_number, session)
    return swiss_pair_round(t, round_number, session)
