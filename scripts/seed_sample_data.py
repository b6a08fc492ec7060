#!/usr/bin/env python
"""Populate the development database with demo players, events and results."""
from __future__ import annotations

import argparse
import random
from datetime import datetime, timedelta
from typing import Sequence

from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from arbiter.app import create_app, db
from arbiter import models
from arbiter.constants import (
    ADMIN,
    PLAYER,
    SWISS,
    ROUND_ROBIN,
    ELIMINATION,
    UPCOMING,
    ONGOING,
    FINISHED,
    CANCELLED,
    WHITE_WINS,
    BLACK_WINS,
    DRAW,
)
from arbiter.pairing import pair_round
from arbiter.formats import max_rounds


def ensure_admin_user() -> models.User:
    admin = models.User.query.filter_by(email="admin@example.com").first()
    if admin is None:
        admin = models.User(email="admin@example.com", name="Admin User", role=ADMIN)
        admin.set_password("admin123")
        db.session.add(admin)
        db.session.commit()
    return admin


def create_user(name: str, email: str, rating: int, password: str = "player123") -> models.User:
    user = models.User.query.filter_by(email=email).first()
    if user is None:
        user = models.User(name=name, email=email, role=PLAYER, rating=rating)
        user.set_password(password)
        db.session.add(user)
    return user


def inscribe(tournament: models.Tournament, users: Sequence[models.User]) -> None:
    for user in users:
        exists = models.Inscription.query.filter_by(
            tournament_id=tournament.id, user_id=user.id
        ).first()
        if exists is None:
            db.session.add(models.Inscription(tournament=tournament, user=user))
    db.session.commit()


def play_rounds(tournament: models.Tournament, rounds: int) -> None:
    """Pair ``rounds`` rounds and fill every game with a random result."""
    count = models.Inscription.query.filter_by(tournament_id=tournament.id).count()
    played = models.Match.query.filter_by(tournament_id=tournament.id).count()
    if played:
        return
    rounds = min(rounds, max_rounds(tournament.format, count))
    for number in range(1, rounds + 1):
        for match in pair_round(tournament, number, db.session):
            match.result = random.choice([WHITE_WINS, WHITE_WINS, BLACK_WINS, DRAW])
        db.session.commit()


def build_sample_world(reset: bool = False) -> None:
    if reset:
        db.drop_all()
        db.create_all()
    random.seed(4545)
    ensure_admin_user()

    organizer = create_user("Morgan Reid", "morgan@example.com", 1850, "organizer123")
    player_details = [
        ("Lena Hart", "lena@example.com", 2010),
        ("Noah Kim", "noah@example.com", 1935),
        ("Eli Turner", "eli@example.com", 1780),
        ("Zara Brooks", "zara@example.com", 1720),
        ("Theo White", "theo@example.com", 1655),
        ("Maya Singh", "maya@example.com", 1590),
        ("Riley Chen", "riley@example.com", 1500),
        ("Sofia Martins", "sofia@example.com", 1410),
    ]
    players = [create_user(name, email, rating) for name, email, rating in player_details]
    db.session.commit()

    today = datetime.utcnow().replace(hour=10, minute=0, second=0, microsecond=0)

    def ensure_tournament(name: str, fmt: str, status: str, start_offset: int, days: int) -> models.Tournament:
        tournament = models.Tournament.query.filter_by(name=name).first()
        if tournament is None:
            tournament = models.Tournament(name=name, format=fmt, created_by=organizer.id)
        tournament.location = "Community Chess Club"
        tournament.start_date = today + timedelta(days=start_offset)
        tournament.end_date = tournament.start_date + timedelta(days=days)
        tournament.status = status
        db.session.add(tournament)
        db.session.commit()
        return tournament

    spring = ensure_tournament("Spring Open", SWISS, UPCOMING, 14, 2)
    spring.registration_deadline = spring.start_date - timedelta(days=1)
    spring.max_participants = 16
    league = ensure_tournament("Club League", ROUND_ROBIN, ONGOING, -3, 30)
    knockout = ensure_tournament("Winter Knockout", ELIMINATION, FINISHED, -40, 1)
    blitz = ensure_tournament("Rained-out Blitz", SWISS, CANCELLED, 5, 1)
    db.session.commit()

    inscribe(spring, players[:5])
    inscribe(league, players[:6])
    inscribe(knockout, players)
    inscribe(blitz, players[4:])

    play_rounds(league, 2)
    play_rounds(knockout, 3)

    print("Database populated with demo content.")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--reset", action="store_true", help="drop and recreate the database before loading data")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if not args.reset:
            db.create_all()
        build_sample_world(reset=args.reset)


if __name__ == "__main__":
    main()
