import os
import sys
from datetime import datetime, timedelta

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from arbiter.app import create_app, db
from arbiter.models import User, Tournament, Inscription
from arbiter.constants import ADMIN, PLAYER, SWISS, UPCOMING


@pytest.fixture
def app(tmp_path, monkeypatch):
    # use temporary SQLite databases for testing
    monkeypatch.setenv("ARBITER_DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("ARBITER_LOG_DB_PATH", str(tmp_path / "test_logs.db"))
    application = create_app()
    application.config['TESTING'] = True
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(session):
    counter = {'n': 0}

    def factory(name=None, role=PLAYER, rating=1500, password='secret'):
        counter['n'] += 1
        n = counter['n']
        u = User(email=f'user{n}@example.com', name=name or f'Player {n}', role=role, rating=rating)
        u.set_password(password)
        session.add(u)
        session.commit()
        return u

    return factory


@pytest.fixture
def admin(make_user):
    return make_user(name='Admin', role=ADMIN)


@pytest.fixture
def organizer(make_user):
    return make_user(name='Organizer')


@pytest.fixture
def make_tournament(session, organizer):
    def factory(fmt=SWISS, status=UPCOMING, start_in_days=7, length_days=2, players=(), **fields):
        start = datetime.utcnow() + timedelta(days=start_in_days)
        t = Tournament(
            name=fields.pop('name', 'Test Open'),
            location='Club',
            start_date=start,
            end_date=start + timedelta(days=length_days),
            format=fmt,
            status=status,
            created_by=fields.pop('created_by', organizer.id),
            **fields,
        )
        session.add(t)
        session.commit()
        for p in players:
            session.add(Inscription(tournament_id=t.id, user_id=p.id))
        session.commit()
        return t

    return factory


@pytest.fixture
def login_as(client):
    def login(user, password='secret'):
        # The app context is shared across requests in tests, so always log
        # the previous user out before switching identity.
        client.post('/api/auth/logout')
        resp = client.post('/api/auth/login', json={'email': user.email, 'password': password})
        assert resp.status_code == 200, resp.get_json()
        return resp

    return login
