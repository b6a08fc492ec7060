from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from arbiter import pairing
from arbiter.models import Match, SiteLog, Tournament, TournamentLog, User
from arbiter.constants import ONGOING, UPCOMING, FINISHED, CANCELLED, DELETED_USER_ID


def data(resp):
    return resp.get_json()['data']


def field(make_user, n):
    return [make_user(name=f'P{i}', rating=1900 - 10 * i) for i in range(n)]


def test_register_login_me(client):
    resp = client.post('/api/auth/register', json={
        'name': 'Ana', 'email': 'Ana@Example.com', 'password': 'pw', 'rating': 1640,
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['success'] is True
    assert body['data']['email'] == 'ana@example.com'
    assert 'timestamp' in body

    assert client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'nope'}).status_code == 401
    assert client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'pw'}).status_code == 200
    me = data(client.get('/api/auth/me'))
    assert me['rating'] == 1640
    assert 'create_tournaments' in me['permissions']
    assert 'manage_users' not in me['permissions']


def test_anonymous_requests_get_401(client, make_tournament):
    t = make_tournament()
    resp = client.post(f'/api/tournaments/{t.id}/start')
    assert resp.status_code == 401
    assert resp.get_json()['success'] is False
    # reads stay public
    assert client.get(f'/api/tournaments/{t.id}').status_code == 200


def test_create_and_read_tournament(client, make_user, login_as):
    org = make_user()
    login_as(org)
    start = (datetime.utcnow() + timedelta(days=5)).date().isoformat()
    end = (datetime.utcnow() + timedelta(days=6)).date().isoformat()
    resp = client.post('/api/tournaments', json={
        'name': 'Club Open', 'location': 'Hall', 'startDate': start, 'endDate': end,
        'format': 'round_robin', 'maxParticipants': 8,
    })
    assert resp.status_code == 201
    t = data(resp)
    assert t['status'] == UPCOMING
    assert t['createdBy'] == org.id
    assert t['progress']['maxRounds'] == 0

    bad = client.post('/api/tournaments', json={'name': 'X', 'startDate': start, 'endDate': end,
                                                 'format': 'bughouse'})
    assert bad.status_code == 400
    reversed_dates = client.post('/api/tournaments', json={'name': 'X', 'startDate': end, 'endDate': start})
    assert reversed_dates.status_code == 400

    listed = data(client.get('/api/tournaments/upcoming'))
    assert [x['name'] for x in listed] == ['Club Open']


def test_start_pair_report_and_standings(client, organizer, make_user, make_tournament, login_as, session):
    ps = field(make_user, 4)
    t = make_tournament(players=ps)

    login_as(ps[0])
    resp = client.post(f'/api/tournaments/{t.id}/start')
    assert resp.status_code == 403
    assert session.query(SiteLog).filter_by(action='unauthorized_access').count() == 1

    login_as(organizer)
    resp = client.post(f'/api/tournaments/{t.id}/start')
    assert resp.status_code == 200
    assert data(resp)['status'] == ONGOING
    assert data(resp)['progress']['currentRound'] == 1

    pending = client.post(f'/api/tournaments/{t.id}/generate-matches')
    assert pending.status_code == 409
    assert pending.get_json()['message'] == 'pending_results'

    round_one = data(client.get(f'/api/matches/round/{t.id}/1'))
    assert len(round_one) == 2
    assert round_one[0]['whitePlayerName'] == 'P0'

    bad = client.put(f"/api/matches/{round_one[0]['id']}/result", json={'result': 'resigned'})
    assert bad.status_code == 400
    for m in round_one:
        resp = client.put(f"/api/matches/{m['id']}/result", json={'result': 'white_wins'})
        assert resp.status_code == 200
        assert data(resp)['result'] == 'white_wins'

    resp = client.post(f'/api/matches/tournament/{t.id}/generate-pairings')
    assert resp.status_code == 201
    assert {m['round'] for m in data(resp)} == {2}
    for m in data(resp):
        assert client.put(f"/api/matches/{m['id']}/start").status_code == 200
        client.put(f"/api/matches/{m['id']}/result", json={'result': 'draw'})

    info = data(client.get(f'/api/tournaments/{t.id}'))
    assert info['status'] == ONGOING
    assert info['effectiveStatus'] == FINISHED
    assert info['progress']['isCompleted'] is True

    done = client.post(f'/api/tournaments/{t.id}/generate-matches')
    assert done.status_code == 409
    assert done.get_json()['message'] == 'max_rounds_reached'

    table = data(client.get(f'/api/matches/tournament/{t.id}/standings'))
    assert [row['gamesPlayed'] for row in table] == [2, 2, 2, 2]
    assert table[0]['points'] >= table[-1]['points']

    logs = data(client.get(f'/api/tournaments/{t.id}/logs'))
    actions = {entry['action'] for entry in logs}
    assert {'start', 'pair_round', 'report'} <= actions

    # completed play reads as finished, so results are closed
    late = client.put(f"/api/matches/{round_one[0]['id']}/result", json={'result': 'draw'})
    assert late.status_code == 409
    assert late.get_json()['message'] == 'invalid_status'
    assert data(client.get(f"/api/matches/{round_one[0]['id']}"))['result'] == 'white_wins'

    # completed play reads as finished, so it can no longer be cancelled
    assert client.post(f'/api/tournaments/{t.id}/cancel').status_code == 409
    assert client.post(f'/api/tournaments/{t.id}/finish').status_code == 200


def test_results_rejected_outside_ongoing(client, organizer, make_user, make_tournament, login_as, session):
    ps = field(make_user, 2)
    t = make_tournament(status=CANCELLED, players=ps)
    m = Match(tournament_id=t.id, round=1, white_player_id=ps[0].id, black_player_id=ps[1].id)
    session.add(m)
    session.commit()
    login_as(organizer)
    resp = client.put(f'/api/matches/{m.id}/result', json={'result': 'draw'})
    assert resp.status_code == 409
    assert resp.get_json()['message'] == 'invalid_status'


def test_edit_and_delete_gates(client, organizer, make_user, make_tournament, login_as):
    ps = field(make_user, 2)
    running = make_tournament(status=ONGOING, start_in_days=-1, players=ps)
    later = make_tournament(name='Later')
    login_as(organizer)

    assert client.put(f'/api/tournaments/{running.id}', json={'name': 'Renamed'}).status_code == 409
    assert client.delete(f'/api/tournaments/{running.id}').status_code == 409

    resp = client.put(f'/api/tournaments/{later.id}', json={'name': 'Renamed'})
    assert resp.status_code == 200
    assert data(resp)['name'] == 'Renamed'
    assert client.delete(f'/api/tournaments/{later.id}').status_code == 200
    assert client.get(f'/api/tournaments/{later.id}').status_code == 404


def test_failed_pairing_leaves_tournament_upcoming(client, organizer, make_user, make_tournament,
                                                   login_as, session, monkeypatch):
    t = make_tournament(players=field(make_user, 4))
    start = t.start_date
    login_as(organizer)

    def locked(*args, **kwargs):
        raise OperationalError('INSERT INTO match', {}, Exception('database is locked'))

    monkeypatch.setattr(pairing, '_create_matches', locked)
    resp = client.post(f'/api/tournaments/{t.id}/start')
    assert resp.status_code == 503
    assert resp.get_json()['message'] == 'store_unavailable'

    session.expire_all()
    stored = session.get(Tournament, t.id)
    assert stored.status == UPCOMING
    assert stored.start_date == start
    assert session.query(Match).filter_by(tournament_id=t.id).count() == 0


def test_completed_tournament_keeps_its_format(client, organizer, make_user, make_tournament,
                                               login_as, session):
    ps = field(make_user, 4)
    t = make_tournament(status=ONGOING, start_in_days=-1, players=ps)
    for rnd, pairs in ((1, ((0, 1), (2, 3))), (2, ((0, 2), (1, 3)))):
        for white, black in pairs:
            session.add(Match(tournament_id=t.id, round=rnd, white_player_id=ps[white].id,
                              black_player_id=ps[black].id, result='draw'))
    session.commit()
    login_as(organizer)

    resp = client.put(f'/api/tournaments/{t.id}', json={'format': 'round_robin'})
    assert resp.status_code == 409
    assert resp.get_json()['message'] == 'invalid_status'

    info = data(client.get(f'/api/tournaments/{t.id}'))
    assert info['format'] == 'swiss'
    assert info['effectiveStatus'] == FINISHED
    assert info['progress']['maxRounds'] == 2
    assert info['progress']['canGenerateNextRound'] is False
    assert client.post(f'/api/tournaments/{t.id}/generate-matches').status_code == 409

    # other details can still be corrected
    resp = client.put(f'/api/tournaments/{t.id}', json={'name': 'Renamed', 'format': 'swiss'})
    assert resp.status_code == 200
    assert data(resp)['name'] == 'Renamed'


def test_reads_recompute_status_from_dates(client, make_tournament, session):
    t = make_tournament(start_in_days=-1, status=UPCOMING)
    assert data(client.get(f'/api/tournaments/{t.id}'))['status'] == ONGOING
    logged = session.query(TournamentLog).filter_by(tournament_id=t.id, action='status_recompute').one()
    assert logged.error == ONGOING


def test_status_patch_is_admin_only(client, admin, organizer, make_tournament, login_as):
    t = make_tournament(status=CANCELLED)
    login_as(organizer)
    assert client.patch(f'/api/tournaments/{t.id}/status', json={'status': 'upcoming'}).status_code == 403
    login_as(admin)
    resp = client.patch(f'/api/tournaments/{t.id}/status', json={'status': 'upcoming'})
    assert resp.status_code == 409
    other = make_tournament(name='Other')
    assert client.patch(f'/api/tournaments/{other.id}/status', json={'status': 'paused'}).status_code == 400
    resp = client.patch(f'/api/tournaments/{other.id}/status', json={'status': 'cancelled'})
    assert data(resp)['status'] == CANCELLED


def test_inscriptions(client, organizer, make_user, make_tournament, login_as):
    a, b, c = field(make_user, 3)
    t = make_tournament(max_participants=2)

    login_as(a)
    assert client.post('/api/inscriptions', json={'tournamentId': t.id}).status_code == 201
    dup = client.post('/api/inscriptions', json={'tournamentId': t.id})
    assert dup.status_code == 409
    assert dup.get_json()['message'] == 'already_registered'
    # signing someone else up needs organizer rights
    assert client.post('/api/inscriptions', json={'tournamentId': t.id, 'userId': b.id}).status_code == 403

    login_as(organizer)
    assert client.post('/api/inscriptions', json={'tournamentId': t.id, 'userId': b.id}).status_code == 201

    login_as(c)
    full = client.post('/api/inscriptions', json={'tournamentId': t.id})
    assert full.get_json()['message'] == 'tournament_full'

    login_as(a)
    assert client.delete(f'/api/inscriptions/tournament/{t.id}/cancel').status_code == 200
    listed = data(client.get(f'/api/inscriptions/tournament/{t.id}'))
    assert [row['userId'] for row in listed] == [b.id]
    assert data(client.get(f'/api/inscriptions/user/{b.id}'))[0]['tournamentId'] == t.id


def test_soft_delete_and_purge(client, admin, make_user, make_tournament, login_as, session):
    ps = field(make_user, 2)
    t = make_tournament(status=ONGOING, start_in_days=-1, players=ps)
    m = Match(tournament_id=t.id, round=1, white_player_id=ps[0].id,
              black_player_id=ps[1].id, result='white_wins')
    session.add(m)
    session.commit()
    removed, purged = ps[0].id, ps[1].id

    login_as(ps[1])
    assert client.delete(f'/api/users/{removed}').status_code == 403

    login_as(admin)
    assert client.delete(f'/api/users/{admin.id}').status_code == 400
    resp = client.delete(f'/api/users/{removed}')
    assert resp.status_code == 200
    assert data(resp)['isDeleted'] is True
    names = {r['playerId']: r['playerName'] for r in data(client.get(f'/api/matches/tournament/{t.id}/standings'))}
    assert names[removed] == f'Player {removed} (removed)'

    busy = client.delete(f'/api/users/{purged}?purge=1')
    assert busy.status_code == 409
    assert busy.get_json()['message'] == 'player_in_ongoing_tournament'
    t.status = FINISHED
    session.commit()
    assert client.delete(f'/api/users/{purged}?purge=1').status_code == 200
    assert session.get(User, purged) is None
    rows = data(client.get(f'/api/matches/tournament/{t.id}/standings'))
    assert {r['playerId']: r['playerName'] for r in rows}[DELETED_USER_ID] == 'Deleted user'
    assert data(client.get(f'/api/matches/{m.id}'))['blackPlayerId'] == DELETED_USER_ID

    client.post('/api/auth/logout')
    resp = client.post('/api/auth/login', json={'email': session.get(User, removed).email, 'password': 'secret'})
    assert resp.status_code == 401


def test_admin_analytics_and_users(client, admin, make_user, make_tournament, login_as):
    player = make_user(name='Zed')
    make_tournament()
    login_as(player)
    assert client.get('/api/admin/analytics').status_code == 403
    assert client.get('/api/users').status_code == 403

    login_as(admin)
    stats = data(client.get('/api/admin/analytics'))
    assert stats['tournaments'][UPCOMING] == 1
    assert stats['users'] >= 3
    assert 'memoryBytes' in stats['system']
    assert [u['name'] for u in data(client.get('/api/users?q=zed'))] == ['Zed']
    resp = client.put(f'/api/users/{player.id}/role', json={'role': 'admin'})
    assert data(resp)['role'] == 'admin'
    assert client.put(f'/api/users/{player.id}/role', json={'role': 'arbiter'}).status_code == 400
    assert any(entry['action'] == 'view_analytics' for entry in data(client.get('/api/admin/logs')))


def test_unknown_routes_use_envelope(client):
    resp = client.get('/api/matches/999')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False
    assert client.get('/api/nowhere').status_code == 404
