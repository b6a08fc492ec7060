from .app import db
from flask_login import UserMixin
from datetime import datetime
from sqlalchemy import UniqueConstraint
import os
import hashlib

from .constants import (
    PLAYER,
    ADMIN,
    SWISS,
    UPCOMING,
    NOT_STARTED,
    DEFAULT_RATING,
)
from . import permissions


class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    # Email and password are optional so organizers can enter walk-in
    # players who never log in.
    email = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.Text, nullable=True)
    salt = db.Column(db.String(32), nullable=True)
    role = db.Column(db.String(20), nullable=False, default=PLAYER)
    rating = db.Column(db.Integer, default=DEFAULT_RATING)
    is_deleted = db.Column(db.Boolean, default=False)
    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def is_admin(self):
        return self.role == ADMIN

    @property
    def is_active(self):
        return not self.is_deleted

    def set_password(self, pw):
        self.salt = os.urandom(16).hex()
        self.password_hash = hashlib.sha256((self.salt + pw).encode()).hexdigest()

    def check_password(self, pw):
        if not self.password_hash or not self.salt:
            return False
        return self.password_hash == hashlib.sha256((self.salt + pw).encode()).hexdigest()

    def has_permission(self, key):
        if self.is_deleted:
            return False
        return permissions.has_permission(self.role, key)


class Tournament(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(200), nullable=False, default='')
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    registration_deadline = db.Column(db.DateTime, nullable=True)
    max_participants = db.Column(db.Integer, nullable=True)
    format = db.Column(db.String(20), nullable=False, default=SWISS)
    status = db.Column(db.String(20), nullable=False, default=UPCOMING)
    # Organizer; plain id so purging an account leaves its tournaments intact.
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Inscription(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    registration_date = db.Column(db.DateTime, default=datetime.utcnow)

    tournament = db.relationship(
        'Tournament',
        backref=db.backref('inscriptions', cascade='all, delete-orphan')
    )
    user = db.relationship(
        'User',
        backref=db.backref('inscriptions', cascade='all, delete-orphan')
    )

    __table_args__ = (UniqueConstraint('tournament_id', 'user_id', name='_tournament_user_uc'),)


class Match(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    round = db.Column(db.Integer, nullable=False)
    # Player ids may hold DELETED_USER_ID, which has no user row.
    white_player_id = db.Column(db.Integer, nullable=False)
    black_player_id = db.Column(db.Integer, nullable=False)
    result = db.Column(db.String(20), nullable=False, default=NOT_STARTED)

    tournament = db.relationship(
        'Tournament',
        backref=db.backref('matches', cascade='all, delete-orphan', order_by='Match.id')
    )


class SiteLog(db.Model):
    __bind_key__ = 'logs'
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(200), nullable=False)
    result = db.Column(db.String(200), nullable=False)
    error = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, nullable=True)


class TournamentLog(db.Model):
    __bind_key__ = 'logs'
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(200), nullable=False)
    result = db.Column(db.String(200), nullable=False)
    error = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, nullable=True)
