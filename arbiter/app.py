from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import (
    LoginManager,
    login_user,
    logout_user,
    login_required,
    current_user,
)
from datetime import datetime, timezone
import os
import click
import psutil

from sqlalchemy import inspect, text, func
from sqlalchemy.exc import SQLAlchemyError


db = SQLAlchemy()
login_manager = LoginManager()


def _upgrade_schema(app):
    """Add columns introduced after the first release to existing databases."""
    with app.app_context():
        inspector = inspect(db.engine)
        tables = inspector.get_table_names()
        if 'user' in tables:
            columns = [c['name'] for c in inspector.get_columns('user')]
            if 'rating' not in columns:
                db.session.execute(text('ALTER TABLE user ADD COLUMN rating INTEGER DEFAULT 1200'))
                db.session.execute(text('UPDATE user SET rating=1200 WHERE rating IS NULL'))
                db.session.commit()
            if 'is_deleted' not in columns:
                db.session.execute(text('ALTER TABLE user ADD COLUMN is_deleted BOOLEAN DEFAULT 0'))
                db.session.execute(text('UPDATE user SET is_deleted=0 WHERE is_deleted IS NULL'))
                db.session.commit()
            if 'deleted_at' not in columns:
                db.session.execute(text('ALTER TABLE user ADD COLUMN deleted_at DATETIME'))
                db.session.commit()
        if 'tournament' in tables:
            columns = [c['name'] for c in inspector.get_columns('tournament')]
            if 'registration_deadline' not in columns:
                db.session.execute(text('ALTER TABLE tournament ADD COLUMN registration_deadline DATETIME'))
                db.session.commit()
            if 'max_participants' not in columns:
                db.session.execute(text('ALTER TABLE tournament ADD COLUMN max_participants INTEGER'))
                db.session.commit()


def parse_datetime(value):
    """Parse an ISO date or datetime from a request into a naive UTC datetime."""
    if not value:
        return None
    value = str(value).strip()
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    candidates = [value]
    if 'T' not in value and ' ' in value:
        candidates.append(value.replace(' ', 'T'))
    for candidate in candidates:
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            continue
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    for fmt in ('%Y-%m-%d %H:%M', '%d/%m/%Y'):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def envelope(data=None, message=None, error=None, success=True):
    body = {
        'success': success,
        'timestamp': datetime.utcnow().isoformat() + 'Z',
    }
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    if error:
        body['error'] = error
    return body


def create_app():
    app = Flask(__name__)
    db_file = os.environ.get('ARBITER_DB_PATH', 'chess_tournament.db')
    log_db_file = os.environ.get('ARBITER_LOG_DB_PATH', db_file.replace('.db', '_logs.db'))
    app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{db_file}'
    app.config['SQLALCHEMY_BINDS'] = {
        'logs': f'sqlite:///{log_db_file}',
    }
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('FLASK_SECRET', 'dev-secret-change-me')

    db.init_app(app)
    login_manager.init_app(app)

    _upgrade_schema(app)

    from .models import User, Tournament, Inscription, Match, SiteLog, TournamentLog
    from .constants import (
        ADMIN,
        PLAYER,
        ROLES,
        FORMATS,
        STATUSES,
        RESULTS,
        UPCOMING,
        DEFAULT_RATING,
    )
    from .errors import ArbiterError, AuthorizationError, NotFoundError, ValidationError, TransportError
    from .formats import normalize_format
    from .standings import display_name
    from . import lifecycle
    from . import permissions
    from . import services

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(envelope(success=False, error='Authentication required.')), 401

    # ---------- CLI ----------
    @app.cli.command('db-init')
    def db_init():
        db.create_all()
        # Ensure a default admin account exists for first-time login
        if not db.session.query(User).filter_by(email="admin@example.com").first():
            u = User(email="admin@example.com", name="Admin", role=ADMIN)
            u.set_password("admin123")
            db.session.add(u)
            db.session.commit()
            print("Created default admin: admin@example.com / admin123")
        print("Database initialized.")

    @app.cli.command('create-admin')
    @click.option('--email', help='Email for the admin user')
    @click.option('--password', help='Password for the admin user')
    @click.option('--name', default='Admin', help='Display name')
    def create_admin(email, password, name):
        if not email:
            email = click.prompt("Admin email", default="admin@example.com")
        if not password:
            password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
        if db.session.query(User).filter_by(email=email).first():
            print("User exists")
            return
        u = User(email=email, name=name, role=ADMIN)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        print("Admin created.")

    # ---------- Logging ----------
    def acting_user_id():
        return current_user.id if current_user.is_authenticated else None

    def log_site(action, result, error=None):
        log = SiteLog(action=action, result=result, error=error, user_id=acting_user_id())
        db.session.add(log)
        db.session.commit()

    def log_tournament(tid, action, result, error=None):
        log = TournamentLog(tournament_id=tid, action=action, result=result, error=error,
                            user_id=acting_user_id())
        db.session.add(log)
        db.session.commit()

    # ---------- Errors ----------
    @app.errorhandler(ArbiterError)
    def handle_arbiter_error(exc):
        db.session.rollback()
        action = request.endpoint or 'request'
        if isinstance(exc, AuthorizationError):
            log_site('unauthorized_access', 'failure', f'{action}: {exc.message}')
        else:
            log_site(action, 'failure', exc.message)
        tid = (request.view_args or {}).get('tid')
        if tid is not None and db.session.get(Tournament, tid) is not None:
            log_tournament(tid, action, 'failure', f'{exc.reason}: {exc.message}')
        body = envelope(success=False, error=exc.message, message=exc.reason)
        return jsonify(body), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(exc):
        db.session.rollback()
        app.logger.exception('Store failure during %s', request.endpoint)
        err = TransportError()
        return jsonify(envelope(success=False, error=err.message, message=err.reason)), err.status_code

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify(envelope(success=False, error='Not found.')), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify(envelope(success=False, error='Method not allowed.')), 405

    # ---------- Serialization ----------
    def iso(value):
        return value.isoformat() if value else None

    def user_dict(u, private=False):
        data = {
            'id': u.id,
            'name': display_name(u.id, u),
            'role': u.role,
            'rating': u.rating,
            'isDeleted': bool(u.is_deleted),
            'deletedAt': iso(u.deleted_at),
        }
        if private or (current_user.is_authenticated and (current_user.id == u.id or current_user.is_admin)):
            data['email'] = u.email
        return data

    def tournament_dict(t, snap=None):
        snap = snap or services.snapshot(db.session, t)
        return {
            'id': t.id,
            'name': t.name,
            'location': t.location,
            'description': t.description,
            'startDate': iso(t.start_date),
            'endDate': iso(t.end_date),
            'registrationDeadline': iso(t.registration_deadline),
            'maxParticipants': t.max_participants,
            'format': t.format,
            'status': t.status,
            'effectiveStatus': snap.effective_status,
            'createdBy': t.created_by,
            'participantCount': snap.participant_count,
            'progress': snap.progress.as_dict(),
        }

    def match_dict(m, players=None):
        players = players if players is not None else services.players_for_matches(db.session, [m])
        return {
            'id': m.id,
            'tournamentId': m.tournament_id,
            'round': m.round,
            'whitePlayerId': m.white_player_id,
            'blackPlayerId': m.black_player_id,
            'whitePlayerName': display_name(
                m.white_player_id, players.get(m.white_player_id)),
            'blackPlayerName': display_name(
                m.black_player_id, players.get(m.black_player_id)),
            'result': m.result,
        }

    def matches_payload(matches):
        players = services.players_for_matches(db.session, matches)
        return [match_dict(m, players) for m in matches]

    def inscription_dict(ins):
        return {
            'id': ins.id,
            'userId': ins.user_id,
            'tournamentId': ins.tournament_id,
            'registrationDate': iso(ins.registration_date),
            'user': user_dict(ins.user) if ins.user else None,
        }

    # ---------- Request helpers ----------
    def payload():
        data = request.get_json(silent=True)
        if data is None:
            data = request.form.to_dict()
        if not isinstance(data, dict):
            raise ValidationError('Expected a JSON object.')
        return data

    def load_tournament(tid):
        t = services.get_or_404(db.session, Tournament, tid)
        if services.refresh_status(db.session, t):
            log_tournament(t.id, 'status_recompute', 'success', t.status)
        return t

    def int_field(data, key):
        value = data.get(key)
        if value in (None, ''):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'{key} must be an integer.')

    def date_field(data, key, required=False):
        raw = data.get(key)
        value = parse_datetime(raw)
        if raw and value is None:
            raise ValidationError(f'Invalid date for {key}.')
        if required and value is None:
            raise ValidationError(f'{key} is required.')
        return value

    def apply_tournament_fields(t, data, creating=False):
        if creating or 'name' in data:
            name = (data.get('name') or '').strip()
            if not name:
                raise ValidationError('name is required.')
            t.name = name
        if creating or 'location' in data:
            t.location = (data.get('location') or '').strip()
        if 'description' in data:
            t.description = data.get('description')
        if creating or 'startDate' in data:
            t.start_date = date_field(data, 'startDate', required=True)
        if creating or 'endDate' in data:
            t.end_date = date_field(data, 'endDate', required=True)
        if 'registrationDeadline' in data:
            t.registration_deadline = date_field(data, 'registrationDeadline')
        if 'maxParticipants' in data:
            max_participants = int_field(data, 'maxParticipants')
            if max_participants is not None and max_participants < 2:
                raise ValidationError('maxParticipants must be at least 2.')
            t.max_participants = max_participants
        if creating or 'format' in data:
            fmt = (data.get('format') or '').strip().lower()
            if fmt and fmt not in FORMATS:
                raise ValidationError(f'Unknown format: {fmt!r}.')
            t.format = normalize_format(fmt)
        if t.end_date < t.start_date:
            raise ValidationError('endDate must not be before startDate.')

    # ---------- Auth ----------
    @app.route('/api/auth/register', methods=['POST'])
    def register():
        data = payload()
        email = (data.get('email') or '').strip().lower()
        name = (data.get('name') or '').strip()
        password = data.get('password') or ''
        if not email or not password or not name:
            raise ValidationError('name, email and password are required.')
        if db.session.query(User).filter_by(email=email).first():
            log_site('register', 'failure', 'email exists')
            raise ValidationError('Email already registered.')
        u = User(email=email, name=name, role=PLAYER,
                 rating=int_field(data, 'rating') or DEFAULT_RATING)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        log_site('register', 'success')
        return jsonify(envelope(user_dict(u, private=True), 'Registered.')), 201

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        data = payload()
        email = (data.get('email') or '').strip().lower()
        u = db.session.query(User).filter_by(email=email).first()
        if u and u.check_password(data.get('password') or '') and login_user(u):
            log_site('login', 'success')
            return jsonify(envelope(user_dict(u, private=True)))
        log_site('login', 'failure', 'invalid credentials')
        return jsonify(envelope(success=False, error='Invalid credentials.')), 401

    @app.route('/api/auth/logout', methods=['POST'])
    @login_required
    def logout():
        log_site('logout', 'success')
        logout_user()
        return jsonify(envelope(message='Logged out.'))

    @app.route('/api/auth/me')
    @login_required
    def me():
        data = user_dict(current_user, private=True)
        data['permissions'] = sorted(permissions.permissions_for(current_user.role))
        return jsonify(envelope(data))

    # ---------- Tournaments ----------
    @app.route('/api/tournaments')
    def list_tournaments():
        tournaments = db.session.query(Tournament).order_by(Tournament.start_date.desc()).all()
        for t in tournaments:
            services.refresh_status(db.session, t)
        return jsonify(envelope([tournament_dict(t) for t in tournaments]))

    @app.route('/api/tournaments/upcoming')
    def upcoming_tournaments():
        tournaments = db.session.query(Tournament).order_by(Tournament.start_date).all()
        for t in tournaments:
            services.refresh_status(db.session, t)
        upcoming = [t for t in tournaments if t.status == UPCOMING]
        return jsonify(envelope([tournament_dict(t) for t in upcoming]))

    @app.route('/api/tournaments/<int:tid>')
    def get_tournament(tid):
        t = load_tournament(tid)
        return jsonify(envelope(tournament_dict(t)))

    @app.route('/api/tournaments', methods=['POST'])
    @login_required
    def create_tournament():
        permissions.require(current_user, permissions.CREATE_TOURNAMENTS)
        data = payload()
        t = Tournament(created_by=current_user.id, status=UPCOMING)
        apply_tournament_fields(t, data, creating=True)
        db.session.add(t)
        db.session.commit()
        services.refresh_status(db.session, t)
        log_site('tournament_create', 'success', t.name)
        log_tournament(t.id, 'create', 'success')
        return jsonify(envelope(tournament_dict(t), 'Tournament created.')), 201

    @app.route('/api/tournaments/<int:tid>', methods=['PUT'])
    @login_required
    def edit_tournament(tid):
        t = load_tournament(tid)
        data = payload()
        lifecycle.check_edit(
            current_user,
            services.snapshot(db.session, t),
            fmt=data.get('format'),
            max_participants=int_field(data, 'maxParticipants'),
        )
        apply_tournament_fields(t, data)
        db.session.commit()
        log_tournament(tid, 'edit', 'success')
        return jsonify(envelope(tournament_dict(t), 'Tournament updated.'))

    @app.route('/api/tournaments/<int:tid>', methods=['DELETE'])
    @login_required
    def delete_tournament(tid):
        t = load_tournament(tid)
        lifecycle.check_delete(current_user, services.snapshot(db.session, t))
        name = t.name
        db.session.delete(t)
        db.session.commit()
        log_site('delete_tournament', 'success', name)
        log_tournament(tid, 'delete', 'success')
        return jsonify(envelope(message='Tournament deleted.'))

    @app.route('/api/tournaments/<int:tid>/status', methods=['PATCH'])
    @login_required
    def update_tournament_status(tid):
        t = services.get_or_404(db.session, Tournament, tid)
        status = payload().get('status')
        services.set_status(db.session, current_user, t, status)
        log_tournament(tid, 'set_status', 'success', status)
        return jsonify(envelope(tournament_dict(t)))

    @app.route('/api/tournaments/<int:tid>/start', methods=['POST'])
    @login_required
    def start_tournament(tid):
        t = services.get_or_404(db.session, Tournament, tid)
        created = services.start_tournament(db.session, current_user, t)
        log_tournament(tid, 'start', 'success', f'matches={len(created)}')
        return jsonify(envelope(tournament_dict(t), 'Tournament started.'))

    @app.route('/api/tournaments/<int:tid>/finish', methods=['POST'])
    @login_required
    def finish_tournament(tid):
        t = load_tournament(tid)
        services.finish_tournament(db.session, current_user, t)
        log_tournament(tid, 'finish', 'success')
        return jsonify(envelope(tournament_dict(t), 'Tournament finished.'))

    @app.route('/api/tournaments/<int:tid>/cancel', methods=['POST'])
    @login_required
    def cancel_tournament(tid):
        t = load_tournament(tid)
        services.cancel_tournament(db.session, current_user, t)
        log_tournament(tid, 'cancel', 'success')
        return jsonify(envelope(tournament_dict(t), 'Tournament cancelled.'))

    @app.route('/api/tournaments/<int:tid>/generate-matches', methods=['POST'])
    @app.route('/api/matches/tournament/<int:tid>/generate-pairings', methods=['POST'])
    @login_required
    def generate_matches(tid):
        t = load_tournament(tid)
        number, created = services.generate_next_round(db.session, current_user, t)
        log_tournament(tid, 'pair_round', 'success', f'round={number}')
        return jsonify(envelope(matches_payload(created), f'Paired round {number}.')), 201

    @app.route('/api/tournaments/<int:tid>/logs')
    @login_required
    def tournament_logs(tid):
        t = services.get_or_404(db.session, Tournament, tid)
        permissions.authorize(current_user, t, 'view_logs')
        logs = (
            db.session.query(TournamentLog)
            .filter_by(tournament_id=tid)
            .order_by(TournamentLog.timestamp.desc(), TournamentLog.id.desc())
            .all()
        )
        return jsonify(envelope([{
            'action': l.action,
            'result': l.result,
            'error': l.error,
            'userId': l.user_id,
            'timestamp': iso(l.timestamp),
        } for l in logs]))

    # ---------- Matches ----------
    @app.route('/api/matches/<int:mid>')
    def get_match(mid):
        m = services.get_or_404(db.session, Match, mid)
        return jsonify(envelope(match_dict(m)))

    @app.route('/api/matches/tournament/<int:tid>')
    def tournament_matches(tid):
        services.get_or_404(db.session, Tournament, tid)
        return jsonify(envelope(matches_payload(services.matches_for_tournament(db.session, tid))))

    @app.route('/api/matches/round/<int:tid>/<int:number>')
    def round_matches(tid, number):
        services.get_or_404(db.session, Tournament, tid)
        return jsonify(envelope(matches_payload(services.matches_for_round(db.session, tid, number))))

    @app.route('/api/matches/player/<int:pid>')
    def player_matches(pid):
        return jsonify(envelope(matches_payload(services.matches_for_player(db.session, pid))))

    @app.route('/api/matches/tournament/<int:tid>/standings')
    def standings(tid):
        t = load_tournament(tid)
        rows = services.standings_for(db.session, t)
        return jsonify(envelope([row.as_dict() for row in rows]))

    @app.route('/api/matches/<int:mid>/result', methods=['PUT'])
    @login_required
    def update_match_result(mid):
        m = services.get_or_404(db.session, Match, mid)
        load_tournament(m.tournament_id)
        result = payload().get('result')
        services.update_match_result(db.session, current_user, m, result)
        log_tournament(m.tournament_id, 'report', 'success', f'match={mid} result={result}')
        return jsonify(envelope(match_dict(m), 'Result submitted.'))

    @app.route('/api/matches/<int:mid>/start', methods=['PUT'])
    @login_required
    def start_match(mid):
        m = services.get_or_404(db.session, Match, mid)
        load_tournament(m.tournament_id)
        services.start_match(db.session, current_user, m)
        log_tournament(m.tournament_id, 'start_match', 'success', f'match={mid}')
        return jsonify(envelope(match_dict(m)))

    # ---------- Inscriptions ----------
    @app.route('/api/inscriptions/tournament/<int:tid>')
    def tournament_inscriptions(tid):
        services.get_or_404(db.session, Tournament, tid)
        rows = db.session.query(Inscription).filter_by(tournament_id=tid).order_by(Inscription.id).all()
        return jsonify(envelope([inscription_dict(i) for i in rows]))

    @app.route('/api/inscriptions/user/<int:uid>')
    def user_inscriptions(uid):
        rows = db.session.query(Inscription).filter_by(user_id=uid).order_by(Inscription.id).all()
        return jsonify(envelope([inscription_dict(i) for i in rows]))

    @app.route('/api/inscriptions', methods=['POST'])
    @login_required
    def create_inscription():
        data = payload()
        tid = int_field(data, 'tournamentId')
        if tid is None:
            raise ValidationError('tournamentId is required.')
        t = load_tournament(tid)
        uid = int_field(data, 'userId') or current_user.id
        user = services.get_or_404(db.session, User, uid)
        ins = services.inscribe(db.session, current_user, t, user)
        log_tournament(tid, 'join', 'success', f'user_id={uid}')
        log_site('join_tournament', 'success')
        return jsonify(envelope(inscription_dict(ins), 'Registered for tournament.')), 201

    @app.route('/api/inscriptions/<int:iid>', methods=['DELETE'])
    @login_required
    def delete_inscription(iid):
        ins = services.get_or_404(db.session, Inscription, iid)
        tid, uid = ins.tournament_id, ins.user_id
        load_tournament(tid)
        services.cancel_inscription(db.session, current_user, ins)
        log_tournament(tid, 'leave', 'success', f'user_id={uid}')
        return jsonify(envelope(message='Inscription cancelled.'))

    @app.route('/api/inscriptions/tournament/<int:tid>/cancel', methods=['DELETE'])
    @login_required
    def cancel_my_inscription(tid):
        load_tournament(tid)
        ins = db.session.query(Inscription).filter_by(tournament_id=tid, user_id=current_user.id).first()
        if ins is None:
            raise NotFoundError('You are not registered for this tournament.')
        services.cancel_inscription(db.session, current_user, ins)
        log_tournament(tid, 'leave', 'success', f'user_id={current_user.id}')
        return jsonify(envelope(message='Inscription cancelled.'))

    # ---------- Admin ----------
    @app.route('/api/users')
    @login_required
    def admin_users():
        permissions.require(current_user, permissions.MANAGE_USERS)
        q = request.args.get('q', '').strip()
        query = db.session.query(User)
        if q:
            pattern = f"%{q}%"
            query = query.filter(User.name.ilike(pattern) | User.email.ilike(pattern))
        users = query.order_by(User.name).all()
        return jsonify(envelope([user_dict(u) for u in users]))

    @app.route('/api/users/<int:uid>/role', methods=['PUT'])
    @login_required
    def admin_update_role(uid):
        permissions.require(current_user, permissions.MANAGE_USERS)
        u = services.get_or_404(db.session, User, uid)
        role = payload().get('role')
        if role not in ROLES:
            raise ValidationError(f'Unknown role: {role!r}.')
        u.role = role
        db.session.commit()
        log_site('user_role', 'success', f'id={uid} role={role}')
        return jsonify(envelope(user_dict(u)))

    @app.route('/api/users/<int:uid>', methods=['DELETE'])
    @login_required
    def admin_delete_user(uid):
        permissions.require(current_user, permissions.MANAGE_USERS)
        u = services.get_or_404(db.session, User, uid)
        if u.id == current_user.id:
            raise ValidationError('You cannot delete your own account.')
        if request.args.get('purge') in ('1', 'true'):
            services.purge_user(db.session, current_user, u)
            log_site('user_purge', 'success', f'id={uid}')
            return jsonify(envelope(message='User purged.'))
        services.soft_delete_user(db.session, current_user, u)
        log_site('user_delete', 'success', f'id={uid}')
        return jsonify(envelope(user_dict(u), 'User deleted.'))

    @app.route('/api/admin/analytics')
    @login_required
    def admin_analytics():
        permissions.require(current_user, permissions.VIEW_SYSTEM_ANALYTICS)
        log_site('view_analytics', 'success')
        by_status = dict(
            db.session.query(Tournament.status, func.count(Tournament.id)).group_by(Tournament.status).all()
        )
        by_result = dict(
            db.session.query(Match.result, func.count(Match.id)).group_by(Match.result).all()
        )
        process = psutil.Process(os.getpid())
        db_path = db.engine.url.database
        db_size = os.path.getsize(db_path) if db_path and os.path.exists(db_path) else 0
        return jsonify(envelope({
            'users': db.session.query(User).filter(User.is_deleted.isnot(True)).count(),
            'deletedUsers': db.session.query(User).filter(User.is_deleted.is_(True)).count(),
            'tournaments': {status: by_status.get(status, 0) for status in STATUSES},
            'matches': {result: by_result.get(result, 0) for result in RESULTS},
            'inscriptions': db.session.query(Inscription).count(),
            'system': {
                'dbSizeBytes': db_size,
                'memoryBytes': process.memory_info().rss,
                'cpuPercent': psutil.cpu_percent(interval=None),
            },
        }))

    @app.route('/api/admin/logs')
    @login_required
    def site_logs():
        permissions.require(current_user, permissions.VIEW_SYSTEM_ANALYTICS)
        logs = db.session.query(SiteLog).order_by(SiteLog.timestamp.desc(), SiteLog.id.desc()).limit(500).all()
        return jsonify(envelope([{
            'action': l.action,
            'result': l.result,
            'error': l.error,
            'userId': l.user_id,
            'timestamp': iso(l.timestamp),
        } for l in logs]))

    return app

app = create_app()
