"""
Flask web application for community tournament brackets.
"""
import os
import re
import logging
import yaml
from contextlib import contextmanager
from datetime import datetime, timedelta
from functools import wraps
from filelock import FileLock, Timeout
from flask import Flask, request, jsonify, session
from tourney.models import (
    Participant, Tournament, Series,
    TOURNAMENT_FORMATS, MATCH_FORMATS, POINT_SYSTEMS, POINT_CALCULATION_MODES, SERIES_STATUSES,
)
from tourney.elimination import generate_bracket, advance_winner, apply_match_update, group_matches_by_round, find_champion
from tourney.ranking import (
    calculate_rankings, calculate_series_points, calculate_series_rankings,
    DEFAULT_RANKING_POINTS, DEFAULT_WINS_POINTS,
)
from tourney.errors import TournamentError, ErrorCode, validation_error, not_found_error, forbidden_error

app = Flask(__name__)
app.logger.setLevel(logging.INFO)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('LOCK_TIMEOUT_SECONDS', '10'))

app.secret_key = _get_or_create_secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)

USERS_FILE = os.path.join(DATA_DIR, 'users.yaml')
TOURNAMENTS_FILE = os.path.join(DATA_DIR, 'tournaments.yaml')
TOURNAMENTS_DIR = os.path.join(DATA_DIR, 'tournaments')
SERIES_FILE = os.path.join(DATA_DIR, 'series.yaml')
SERIES_DIR = os.path.join(DATA_DIR, 'series')

MAX_TITLE_LENGTH = 100
MIN_PARTICIPANTS_LIMIT = 2
MAX_PARTICIPANTS_LIMIT = 256


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    """Render application errors as JSON with the mapped HTTP status."""
    return jsonify(error.to_dict()), error.http_status


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------

@contextmanager
def _locked(lock_path: str):
    os.makedirs(os.path.dirname(lock_path), exist_ok=True)
    try:
        with FileLock(lock_path, timeout=LOCK_TIMEOUT):
            yield
    except Timeout:
        app.logger.error(f'Timed out waiting for lock {lock_path}')
        raise TournamentError(ErrorCode.LOCK_TIMEOUT)


def _registry_lock():
    """Serialize writes to the users / tournaments / series registries."""
    return _locked(os.path.join(DATA_DIR, '.lock'))


def _tournament_lock(tournament_id: str):
    """Serialize bracket generation, entry and result reporting per tournament."""
    get_tournament(tournament_id)
    return _locked(os.path.join(_tournament_dir(tournament_id), '.lock'))


def _series_lock(series_id: str):
    return _locked(os.path.join(_series_dir(series_id), '.lock'))


# ---------------------------------------------------------------------------
# YAML persistence
# ---------------------------------------------------------------------------

def _load_yaml_list(path: str, key: str) -> list:
    if not os.path.exists(path):
        return []
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return []
    if not data:
        return []
    return data.get(key, []) or []


def _save_yaml_list(path: str, key: str, items: list):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump({key: items}, f, default_flow_style=False, sort_keys=False)


def _slugify(name: str) -> str:
    """Convert a title to a filesystem-safe slug."""
    slug = name.lower().strip()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'[\s-]+', '-', slug)
    slug = slug.strip('-')
    return slug or 'tournament'


def _unique_slug(name: str, existing: set) -> str:
    base = _slugify(name)
    slug = base
    suffix = 2
    while slug in existing:
        slug = f'{base}-{suffix}'
        suffix += 1
    return slug


def _tournament_dir(tournament_id: str) -> str:
    return os.path.join(TOURNAMENTS_DIR, tournament_id)


def _series_dir(series_id: str) -> str:
    return os.path.join(SERIES_DIR, series_id)


def load_users() -> list:
    """Load user registry from YAML."""
    return _load_yaml_list(USERS_FILE, 'users')


def save_users(users: list):
    """Save user registry to YAML."""
    _save_yaml_list(USERS_FILE, 'users', users)


def load_tournaments() -> list:
    """Load all tournaments from the registry."""
    return [Tournament.from_dict(t) for t in _load_yaml_list(TOURNAMENTS_FILE, 'tournaments')]


def save_tournaments(tournaments: list):
    _save_yaml_list(TOURNAMENTS_FILE, 'tournaments', [t.to_dict() for t in tournaments])


def get_tournament(tournament_id: str) -> Tournament:
    for tournament in load_tournaments():
        if tournament.id == tournament_id:
            return tournament
    raise not_found_error('Tournament')


def update_tournament(tournament_id: str, **changes) -> Tournament:
    """
    Set ``changes`` on the stored tournament and return the updated copy.

    The registry is reloaded under its lock so fields written by other
    requests in the meantime (such as ``series_id``) are kept.
    """
    with _registry_lock():
        tournaments = load_tournaments()
        tournament = next((t for t in tournaments if t.id == tournament_id), None)
        if tournament is None:
            raise not_found_error('Tournament')
        for key, value in changes.items():
            setattr(tournament, key, value)
        save_tournaments(tournaments)
    return tournament


def load_participants(tournament_id: str) -> list:
    """Load participants of a tournament ordered by entry number."""
    path = os.path.join(_tournament_dir(tournament_id), 'participants.yaml')
    participants = [Participant.from_dict(p) for p in _load_yaml_list(path, 'participants')]
    return sorted(participants, key=lambda p: p.entry_number)


def save_participants(tournament_id: str, participants: list):
    path = os.path.join(_tournament_dir(tournament_id), 'participants.yaml')
    _save_yaml_list(path, 'participants', [p.to_dict() for p in participants])


def load_matches(tournament_id: str) -> list:
    """Load the bracket match records of a tournament."""
    path = os.path.join(_tournament_dir(tournament_id), 'matches.yaml')
    return _load_yaml_list(path, 'matches')


def save_matches(tournament_id: str, matches: list):
    """Write every match of a tournament in a single file write."""
    path = os.path.join(_tournament_dir(tournament_id), 'matches.yaml')
    _save_yaml_list(path, 'matches', matches)


def load_series_list() -> list:
    return [Series.from_dict(s) for s in _load_yaml_list(SERIES_FILE, 'series')]


def save_series_list(series_list: list):
    _save_yaml_list(SERIES_FILE, 'series', [s.to_dict() for s in series_list])


def get_series(series_id: str) -> Series:
    for series in load_series_list():
        if series.id == series_id:
            return series
    raise not_found_error('Series')


def load_series_points(series_id: str) -> list:
    return _load_yaml_list(os.path.join(_series_dir(series_id), 'points.yaml'), 'points')


def save_series_points(series_id: str, records: list):
    _save_yaml_list(os.path.join(_series_dir(series_id), 'points.yaml'), 'points', records)


# ---------------------------------------------------------------------------
# Users and sessions
# ---------------------------------------------------------------------------

def create_user(username: str, password: str) -> tuple:
    """Create a new user. Returns (success, message)."""
    from werkzeug.security import generate_password_hash
    username = username.lower().strip()
    if not re.match(r'^[a-z0-9][a-z0-9_-]*$', username) or len(username) < 2:
        return False, 'Username must be at least 2 characters: letters, numbers, hyphens, underscores.'
    if len(password) < 8:
        return False, 'Password must be at least 8 characters.'
    with _registry_lock():
        users = load_users()
        if any(u['username'] == username for u in users):
            return False, 'Username already taken.'
        users.append({
            'username': username,
            'password_hash': generate_password_hash(password),
            'created': datetime.now().isoformat(),
        })
        save_users(users)
    return True, 'Account created successfully.'


def authenticate_user(username: str, password: str) -> bool:
    """Check username/password. Returns True if valid."""
    from werkzeug.security import check_password_hash
    for u in load_users():
        if u['username'] == username.lower().strip():
            return check_password_hash(u['password_hash'], password)
    return False


def current_user():
    return session.get('user')


def login_required(f):
    """Reject the request with 401 unless a user is logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            raise TournamentError(ErrorCode.UNAUTHORIZED)
        return f(*args, **kwargs)
    return decorated_function


def _require_organizer(owner: str):
    if owner != current_user():
        raise forbidden_error('Only the organizer can perform this action.')


@app.route('/api/register', methods=['POST'])
def api_register():
    data = request.get_json(silent=True) or {}
    ok, message = create_user(data.get('username', ''), data.get('password', ''))
    if not ok:
        raise validation_error(message)
    session['user'] = data['username'].lower().strip()
    app.logger.info(f'Registered user {session["user"]}')
    return jsonify({'success': True, 'user': session['user']}), 201


@app.route('/api/login', methods=['POST'])
def api_login():
    data = request.get_json(silent=True) or {}
    username = data.get('username', '')
    if not authenticate_user(username, data.get('password', '')):
        raise TournamentError(ErrorCode.UNAUTHORIZED, 'Invalid username or password.')
    session.permanent = True
    session['user'] = username.lower().strip()
    return jsonify({'success': True, 'user': session['user']})


@app.route('/api/logout', methods=['POST'])
def api_logout():
    session.pop('user', None)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Tournament validation
# ---------------------------------------------------------------------------

def _parse_datetime(value, field: str):
    if value in (None, ''):
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise validation_error(f'{field} must be an ISO 8601 datetime.', {'field': field})


def _parse_int(value, field: str, minimum=None, maximum=None) -> int:
    if isinstance(value, bool):
        raise validation_error(f'{field} must be an integer.', {'field': field})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise validation_error(f'{field} must be an integer.', {'field': field})
    if minimum is not None and number < minimum:
        raise validation_error(f'{field} must be at least {minimum}.', {'field': field})
    if maximum is not None and number > maximum:
        raise validation_error(f'{field} must be at most {maximum}.', {'field': field})
    return number


def validate_tournament_data(data: dict) -> dict:
    """
    Validate a tournament create payload.

    Returns the cleaned fields; raises a VALIDATION_ERROR naming the first
    offending field.
    """
    title = (data.get('title') or '').strip()
    if not title:
        raise validation_error('Tournament title is required.', {'field': 'title'})
    if len(title) > MAX_TITLE_LENGTH:
        raise validation_error(f'Tournament title must be at most {MAX_TITLE_LENGTH} characters.', {'field': 'title'})

    tournament_format = data.get('tournament_format', 'single_elimination')
    if tournament_format not in TOURNAMENT_FORMATS:
        raise validation_error(f'Unknown tournament format: {tournament_format}', {'field': 'tournament_format'})
    match_format = data.get('match_format', 'bo1')
    if match_format not in MATCH_FORMATS:
        raise validation_error(f'Unknown match format: {match_format}', {'field': 'match_format'})

    max_participants = _parse_int(data.get('max_participants', 32), 'max_participants',
                                  MIN_PARTICIPANTS_LIMIT, MAX_PARTICIPANTS_LIMIT)

    entry_start = _parse_datetime(data.get('entry_start_at'), 'entry_start_at')
    entry_deadline = _parse_datetime(data.get('entry_deadline'), 'entry_deadline')
    start_at = _parse_datetime(data.get('start_at'), 'start_at')
    try:
        if entry_start and entry_deadline and entry_start >= entry_deadline:
            raise validation_error('Entry deadline must be after the entry start.', {'field': 'entry_deadline'})
        if entry_deadline and start_at and entry_deadline >= start_at:
            raise validation_error('Tournament start must be after the entry deadline.', {'field': 'start_at'})
    except TypeError:
        raise validation_error('Datetimes must all include a timezone or all omit it.')

    return {
        'title': title,
        'description': (data.get('description') or '').strip(),
        'tournament_format': tournament_format,
        'match_format': match_format,
        'max_participants': max_participants,
        'entry_start_at': entry_start.isoformat() if entry_start else None,
        'entry_deadline': entry_deadline.isoformat() if entry_deadline else None,
        'start_at': start_at.isoformat() if start_at else None,
    }


def _entry_open(tournament: Tournament) -> bool:
    """Entries are open while recruiting and inside the optional entry window."""
    if tournament.status != 'recruiting':
        return False
    if tournament.entry_start_at:
        start = datetime.fromisoformat(tournament.entry_start_at)
        if datetime.now(start.tzinfo) < start:
            return False
    if tournament.entry_deadline:
        deadline = datetime.fromisoformat(tournament.entry_deadline)
        if datetime.now(deadline.tzinfo) > deadline:
            return False
    return True


# ---------------------------------------------------------------------------
# Tournaments
# ---------------------------------------------------------------------------

def _tournament_summary(tournament: Tournament) -> dict:
    summary = tournament.to_dict()
    summary['participant_count'] = len(load_participants(tournament.id))
    return summary


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    """List tournaments, optionally filtered by status, organizer or title."""
    status = request.args.get('status')
    organizer = request.args.get('organizer')
    query = (request.args.get('q') or '').strip().lower()

    tournaments = load_tournaments()
    if status:
        tournaments = [t for t in tournaments if t.status == status]
    if organizer:
        tournaments = [t for t in tournaments if t.organizer == organizer]
    if query:
        tournaments = [t for t in tournaments if query in t.title.lower()]
    return jsonify({'tournaments': [_tournament_summary(t) for t in tournaments]})


@app.route('/api/tournaments', methods=['POST'])
@login_required
def api_create_tournament():
    """Create a new tournament owned by the current user."""
    fields = validate_tournament_data(request.get_json(silent=True) or {})
    with _registry_lock():
        tournaments = load_tournaments()
        slug = _unique_slug(fields['title'], {t.id for t in tournaments})
        tournament = Tournament(id=slug, organizer=current_user(), created=datetime.now().isoformat(), **fields)
        tournaments.append(tournament)
        save_tournaments(tournaments)
    os.makedirs(_tournament_dir(slug), exist_ok=True)
    app.logger.info(f'Tournament {slug} created by {tournament.organizer}')
    return jsonify({'success': True, 'tournament': _tournament_summary(tournament)}), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    return jsonify({'tournament': _tournament_summary(get_tournament(tournament_id))})


@app.route('/api/tournaments/<tournament_id>/status', methods=['POST'])
@login_required
def api_update_tournament_status(tournament_id):
    """Move a tournament through its lifecycle (draft, published, recruiting, cancelled)."""
    data = request.get_json(silent=True) or {}
    new_status = data.get('status')
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        _require_organizer(tournament.organizer)
        if not tournament.can_transition_to(new_status):
            raise TournamentError(
                ErrorCode.INVALID_TOURNAMENT_STATUS,
                f'Cannot change status from {tournament.status} to {new_status}.',
            )
        tournament = update_tournament(tournament_id, status=new_status)
    app.logger.info(f'Tournament {tournament_id} is now {new_status}')
    return jsonify({'success': True, 'tournament': tournament.to_dict()})


@app.route('/api/tournaments/<tournament_id>/participants', methods=['GET'])
def api_list_participants(tournament_id):
    get_tournament(tournament_id)
    return jsonify({'participants': [p.to_dict() for p in load_participants(tournament_id)]})


@app.route('/api/tournaments/<tournament_id>/entry', methods=['POST'])
@login_required
def api_enter_tournament(tournament_id):
    """Register the current user as a participant."""
    data = request.get_json(silent=True) or {}
    user = current_user()
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        if not _entry_open(tournament):
            raise TournamentError(ErrorCode.INVALID_TOURNAMENT_STATUS, 'Entries are not open for this tournament.')
        participants = load_participants(tournament_id)
        if any(p.user_id == user for p in participants):
            raise TournamentError(ErrorCode.DUPLICATE_ENTRY)
        if len(participants) >= tournament.max_participants:
            raise TournamentError(ErrorCode.TOURNAMENT_FULL)

        entry_number = max((p.entry_number for p in participants), default=0) + 1
        display_name = (data.get('display_name') or '').strip() or user
        participant = Participant(user_id=user, entry_number=entry_number, display_name=display_name)
        participants.append(participant)
        save_participants(tournament_id, participants)
    return jsonify({'success': True, 'participant': participant.to_dict()}), 201


@app.route('/api/tournaments/<tournament_id>/entry', methods=['DELETE'])
@login_required
def api_withdraw_entry(tournament_id):
    """Withdraw the current user's entry while entries are open."""
    user = current_user()
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        if tournament.status != 'recruiting':
            raise TournamentError(ErrorCode.INVALID_TOURNAMENT_STATUS, 'Entries can only be withdrawn while recruiting.')
        participants = load_participants(tournament_id)
        remaining = [p for p in participants if p.user_id != user]
        if len(remaining) == len(participants):
            raise not_found_error('Entry')
        save_participants(tournament_id, remaining)
    return jsonify({'success': True})


def _update_participant(tournament_id: str, user_id: str, **changes) -> Participant:
    """Apply organizer changes to one participant before the bracket exists."""
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        _require_organizer(tournament.organizer)
        if load_matches(tournament_id):
            raise TournamentError(ErrorCode.BRACKET_ALREADY_GENERATED)
        participants = load_participants(tournament_id)
        participant = next((p for p in participants if p.user_id == user_id), None)
        if participant is None:
            raise not_found_error('Participant')
        for key, value in changes.items():
            setattr(participant, key, value)
        save_participants(tournament_id, participants)
    return participant


@app.route('/api/tournaments/<tournament_id>/participants/<user_id>/seed', methods=['POST'])
@login_required
def api_set_seed(tournament_id, user_id):
    """Set or clear (``seed: null``) a participant's seed."""
    data = request.get_json(silent=True) or {}
    seed = data.get('seed')
    if seed is not None:
        seed = _parse_int(seed, 'seed', minimum=1)
    participant = _update_participant(tournament_id, user_id, seed=seed)
    return jsonify({'success': True, 'participant': participant.to_dict()})


@app.route('/api/tournaments/<tournament_id>/participants/<user_id>/check-in', methods=['POST'])
@login_required
def api_check_in(tournament_id, user_id):
    participant = _update_participant(tournament_id, user_id, checked_in_at=datetime.now().isoformat())
    return jsonify({'success': True, 'participant': participant.to_dict()})


@app.route('/api/tournaments/<tournament_id>/participants/<user_id>/check-in', methods=['DELETE'])
@login_required
def api_undo_check_in(tournament_id, user_id):
    participant = _update_participant(tournament_id, user_id, checked_in_at=None)
    return jsonify({'success': True, 'participant': participant.to_dict()})


# ---------------------------------------------------------------------------
# Bracket
# ---------------------------------------------------------------------------

def _advance_byes(matches: list) -> list:
    """Move every bye winner into its round 2 slot."""
    for match in [m for m in matches if m['status'] == 'bye']:
        update = advance_winner(match, matches)
        if update:
            matches = apply_match_update(matches, update)
    return matches


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['POST'])
@login_required
def api_generate_bracket(tournament_id):
    """
    Close entries and create the single elimination bracket.

    With ``checked_in_only`` only checked-in participants are placed.
    """
    data = request.get_json(silent=True) or {}
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        _require_organizer(tournament.organizer)
        if load_matches(tournament_id):
            raise TournamentError(ErrorCode.BRACKET_ALREADY_GENERATED)
        if tournament.status != 'recruiting':
            raise TournamentError(ErrorCode.INVALID_TOURNAMENT_STATUS,
                                  'The bracket can only be generated while recruiting.')
        if tournament.tournament_format != 'single_elimination':
            raise TournamentError(ErrorCode.INVALID_INPUT,
                                  f'{tournament.tournament_format} brackets are not supported.')

        participants = load_participants(tournament_id)
        if data.get('checked_in_only'):
            participants = [p for p in participants if p.checked_in_at]

        matches = _advance_byes(generate_bracket(tournament_id, participants))
        save_matches(tournament_id, matches)

        update_tournament(tournament_id, status='in_progress')

    app.logger.info(f'Bracket generated for {tournament_id}: {len(participants)} participants, {len(matches)} matches')
    return jsonify({'success': True, 'matches': matches, 'rounds': group_matches_by_round(matches)}), 201


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['GET'])
def api_get_bracket(tournament_id):
    get_tournament(tournament_id)
    matches = load_matches(tournament_id)
    return jsonify({
        'rounds': group_matches_by_round(matches),
        'champion': find_champion(matches),
    })


def _find_match(matches: list, match_id: str) -> dict:
    match = next((m for m in matches if m['id'] == match_id), None)
    if match is None:
        raise not_found_error('Match')
    return match


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/start', methods=['POST'])
@login_required
def api_start_match(tournament_id, match_id):
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        _require_organizer(tournament.organizer)
        matches = load_matches(tournament_id)
        match = _find_match(matches, match_id)
        if match['status'] != 'pending' or not (match['player1_id'] and match['player2_id']):
            raise validation_error('Only a pending match with both players can be started.')
        update = {'id': match_id, 'status': 'in_progress'}
        matches = apply_match_update(matches, update)
        save_matches(tournament_id, matches)
    return jsonify({'success': True, 'match': _find_match(matches, match_id)})


def _validate_result(match: dict, data: dict) -> dict:
    if match['status'] not in ('pending', 'in_progress'):
        raise validation_error('This match is not open for results.')
    if not (match['player1_id'] and match['player2_id']):
        raise validation_error('Both players must be decided before reporting a result.')

    player1_score = _parse_int(data.get('player1_score', 0), 'player1_score', minimum=0)
    player2_score = _parse_int(data.get('player2_score', 0), 'player2_score', minimum=0)
    winner_id = data.get('winner_id')
    if winner_id not in (match['player1_id'], match['player2_id']):
        raise validation_error('winner_id must be one of the match players.', {'field': 'winner_id'})
    if player1_score != player2_score:
        leader = match['player1_id'] if player1_score > player2_score else match['player2_id']
        if leader != winner_id:
            raise validation_error('The winner must have the higher score.', {'field': 'winner_id'})

    return {
        'id': match['id'],
        'player1_score': player1_score,
        'player2_score': player2_score,
        'winner_id': winner_id,
        'status': 'completed',
    }


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/result', methods=['POST'])
@login_required
def api_report_result(tournament_id, match_id):
    """Record a match result and move the winner into the next match."""
    data = request.get_json(silent=True) or {}
    with _tournament_lock(tournament_id):
        tournament = get_tournament(tournament_id)
        _require_organizer(tournament.organizer)
        if tournament.status != 'in_progress':
            raise TournamentError(ErrorCode.INVALID_TOURNAMENT_STATUS, 'The tournament is not in progress.')

        matches = load_matches(tournament_id)
        result = _validate_result(_find_match(matches, match_id), data)
        matches = apply_match_update(matches, result)
        completed = _find_match(matches, match_id)

        advanced = advance_winner(completed, matches)
        if advanced:
            matches = apply_match_update(matches, advanced)
        elif completed.get('next_match_id'):
            app.logger.warning(
                f'Match {match_id} links to missing match {completed["next_match_id"]}; winner not advanced'
            )
        save_matches(tournament_id, matches)

        if not completed.get('next_match_id'):
            tournament = _complete_tournament(tournament, completed)

    app.logger.info(f'Result recorded for {match_id}: winner {completed["winner_id"]}')
    return jsonify({
        'success': True,
        'match': completed,
        'advanced': advanced,
        'tournament_status': tournament.status,
    })


def _complete_tournament(tournament: Tournament, final: dict) -> Tournament:
    """Mark the tournament completed after its final and record placements."""
    winner_id = final['winner_id']
    runner_up = final['player2_id'] if final['player1_id'] == winner_id else final['player1_id']
    participants = load_participants(tournament.id)
    for participant in participants:
        if participant.user_id == winner_id:
            participant.final_placement = 1
        elif participant.user_id == runner_up:
            participant.final_placement = 2
    save_participants(tournament.id, participants)

    tournament = update_tournament(tournament.id, status='completed')
    app.logger.info(f'Tournament {tournament.id} completed, champion {winner_id}')

    if tournament.series_id:
        series = get_series(tournament.series_id)
        if series.point_calculation_mode == 'auto':
            record_series_points(series, tournament.id)
    return tournament


@app.route('/api/tournaments/<tournament_id>/ranking', methods=['GET'])
def api_tournament_ranking(tournament_id):
    get_tournament(tournament_id)
    rankings = calculate_rankings(load_participants(tournament_id), load_matches(tournament_id))
    return jsonify({'ranking': rankings})


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------

def validate_point_config(point_system: str, point_config) -> dict:
    """Check a series point configuration; an empty config takes the default."""
    if not point_config:
        return dict(DEFAULT_WINS_POINTS if point_system == 'wins' else DEFAULT_RANKING_POINTS)
    if not isinstance(point_config, dict):
        raise validation_error('point_config must be an object.', {'field': 'point_config'})

    if point_system == 'wins':
        return {
            'points_per_win': _parse_int(point_config.get('points_per_win'), 'points_per_win', minimum=0),
            'points_per_loss': _parse_int(point_config.get('points_per_loss', 0), 'points_per_loss', minimum=0),
        }

    cleaned = {}
    for key, points in point_config.items():
        key = str(key)
        if not re.match(r'^\d+(-\d+)?$', key):
            raise validation_error(f'Invalid placement key: {key}', {'field': 'point_config'})
        if '-' in key:
            low, high = (int(part) for part in key.split('-'))
            if low > high:
                raise validation_error(f'Invalid placement range: {key}', {'field': 'point_config'})
        cleaned[key] = _parse_int(points, f'points for {key}', minimum=0)
    return cleaned


@app.route('/api/series', methods=['GET'])
def api_list_series():
    status = request.args.get('status')
    series_list = load_series_list()
    if status:
        series_list = [s for s in series_list if s.status == status]
    return jsonify({'series': [s.to_dict() for s in series_list]})


@app.route('/api/series', methods=['POST'])
@login_required
def api_create_series():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        raise validation_error('Series name is required.', {'field': 'name'})
    point_system = data.get('point_system', 'ranking')
    if point_system not in POINT_SYSTEMS:
        raise validation_error(f'Unknown point system: {point_system}', {'field': 'point_system'})
    mode = data.get('point_calculation_mode', 'auto')
    if mode not in POINT_CALCULATION_MODES:
        raise validation_error(f'Unknown point calculation mode: {mode}', {'field': 'point_calculation_mode'})
    status = data.get('status', 'active')
    if status not in SERIES_STATUSES:
        raise validation_error(f'Unknown series status: {status}', {'field': 'status'})

    with _registry_lock():
        series_list = load_series_list()
        series = Series(
            id=_unique_slug(name, {s.id for s in series_list}),
            name=name,
            organizer=current_user(),
            point_system=point_system,
            point_config=validate_point_config(point_system, data.get('point_config')),
            point_calculation_mode=mode,
            status=status,
            description=(data.get('description') or '').strip(),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            created=datetime.now().isoformat(),
        )
        series_list.append(series)
        save_series_list(series_list)
    return jsonify({'success': True, 'series': series.to_dict()}), 201


@app.route('/api/series/<series_id>', methods=['GET'])
def api_get_series(series_id):
    series = get_series(series_id)
    details = series.to_dict()
    tournaments = {t.id: t for t in load_tournaments()}
    details['tournaments'] = [_tournament_summary(tournaments[tid]) for tid in series.tournaments if tid in tournaments]
    details['calculated_tournaments'] = sorted({r['tournament_id'] for r in load_series_points(series_id)})
    return jsonify({'series': details})


@app.route('/api/series/<series_id>/tournaments', methods=['POST'])
@login_required
def api_attach_tournament(series_id):
    """Add one of the organizer's tournaments to a series."""
    data = request.get_json(silent=True) or {}
    tournament_id = data.get('tournament_id')
    with _registry_lock():
        series_list = load_series_list()
        series = next((s for s in series_list if s.id == series_id), None)
        if series is None:
            raise not_found_error('Series')
        _require_organizer(series.organizer)

        tournaments = load_tournaments()
        tournament = next((t for t in tournaments if t.id == tournament_id), None)
        if tournament is None:
            raise not_found_error('Tournament')
        _require_organizer(tournament.organizer)
        if tournament.series_id and tournament.series_id != series_id:
            raise validation_error('The tournament already belongs to another series.')

        tournament.series_id = series_id
        if tournament_id not in series.tournaments:
            series.tournaments.append(tournament_id)
        save_tournaments(tournaments)
        save_series_list(series_list)
    return jsonify({'success': True, 'series': series.to_dict()})


def record_series_points(series: Series, tournament_id: str) -> list:
    """(Re)calculate the series points earned in one completed tournament."""
    rankings = calculate_rankings(load_participants(tournament_id), load_matches(tournament_id))
    records = calculate_series_points(series.point_system, series.point_config, tournament_id, rankings)
    with _series_lock(series.id):
        existing = [r for r in load_series_points(series.id) if r['tournament_id'] != tournament_id]
        save_series_points(series.id, existing + records)
    app.logger.info(f'Recorded {len(records)} series point entries for {tournament_id} in {series.id}')
    return records


@app.route('/api/series/<series_id>/points/<tournament_id>', methods=['POST'])
@login_required
def api_confirm_series_points(series_id, tournament_id):
    """Confirm points for a completed tournament (manual calculation mode)."""
    series = get_series(series_id)
    _require_organizer(series.organizer)
    if tournament_id not in series.tournaments:
        raise not_found_error('Tournament in series')
    tournament = get_tournament(tournament_id)
    if tournament.status != 'completed':
        raise TournamentError(ErrorCode.INVALID_TOURNAMENT_STATUS, 'Points can only be confirmed for completed tournaments.')
    records = record_series_points(series, tournament_id)
    return jsonify({'success': True, 'points': records})


@app.route('/api/series/<series_id>/ranking', methods=['GET'])
def api_series_ranking(series_id):
    series = get_series(series_id)
    names = {}
    for tournament_id in series.tournaments:
        for participant in load_participants(tournament_id):
            names.setdefault(participant.user_id, participant.display_name)
    return jsonify({'ranking': calculate_series_rankings(load_series_points(series_id), names)})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
