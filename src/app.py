"""
Flask JSON API for the table tennis tournament engine.
"""
import os
import logging
from datetime import datetime

from flask import Flask, request, jsonify

from ttcore import engine
from ttcore.exceptions import TournamentEngineError, TournamentStateError, UnknownMatchError
from ttcore.models import Participant, SetScore
from ttcore.allocation import next_ready_matches
from ttcore.scoring import can_upgrade_best_of, is_upgraded_best_of
from ttcore.standings import group_standings
from ttcore.swiss import recommended_rounds
from ttcore.validation import has_errors, validate_seeding
from storage import DATA_DIR, StaleSnapshotError, TournamentStore

app = Flask(__name__)
app.logger.setLevel(logging.INFO)


def get_store() -> TournamentStore:
    """Store for the configured data directory."""
    return TournamentStore(DATA_DIR)


def _serialize_change(change) -> dict:
    return {
        'type': type(change).__name__,
        'match_id': getattr(change, 'match_id', None),
        'fields': change.to_update(),
    }


def _expected_version(data: dict):
    return _int_field(data, 'version')


def _int_field(data: dict, key: str):
    """Whole number from the request body, None when missing."""
    value = data.get(key)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be a whole number") from None


def _engine_error(e: Exception):
    """JSON error body for engine and store failures."""
    if isinstance(e, UnknownMatchError):
        return jsonify({'error': str(e)}), 404
    if isinstance(e, StaleSnapshotError):
        return jsonify({'error': str(e), 'version': e.actual}), 409
    return jsonify({'error': str(e)}), 400


def _success(result, version: int):
    return jsonify({
        'success': True,
        'version': version,
        'changes': [_serialize_change(c) for c in result.changes],
    })


def _run(data: dict, operation):
    """
    Run an engine operation on the stored snapshot and write its deltas.

    The store stays locked from the read to the write, and the write is
    checked against the version that was read.
    """
    store = get_store()
    try:
        with store.transaction(_expected_version(data)) as (state, version):
            result = operation(state)
            version = store.apply_changes(result.changes, version)
    except (TournamentEngineError, StaleSnapshotError) as e:
        return _engine_error(e)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return _success(result, version)


def _parse_sets(raw_sets) -> list:
    sets = []
    for score in raw_sets or []:
        if isinstance(score, (list, tuple)):
            if len(score) < 2 or score[0] in (None, '') or score[1] in (None, ''):
                raise ValueError('Both scores of a set must be filled')
        sets.append(SetScore.from_dict(score))
    return sets


@app.route('/api/tournament', methods=['GET'])
def api_get_tournament():
    """Current snapshot, its version and the champion if decided."""
    state, version = get_store().fetch_versioned()
    payload = state.to_dict()
    payload['version'] = version
    payload['champion'] = engine.champion(state)
    payload['round_names'] = {m.id: engine.round_name(state, m) for m in state.matches}
    return jsonify(payload)


@app.route('/api/tournament/generate', methods=['POST'])
def api_generate():
    """Generate the first phase for the stored (or posted) participants."""
    data = request.get_json(silent=True) or {}
    store = get_store()

    try:
        participants = None
        if data.get('participants') is not None:
            participants = [Participant.from_dict(p) for p in data['participants']]
        with store.transaction(_expected_version(data)) as (state, version):
            result = engine.generate_bracket(
                state,
                participants=participants,
                mode=data.get('mode'),
                group_size=_int_field(data, 'group_size'),
                best_of=_int_field(data, 'best_of'),
            )
            version = store.save_tournament(result.state, version)
    except (TournamentEngineError, StaleSnapshotError) as e:
        return _engine_error(e)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    app.logger.info(f'Generated {len(result.state.matches)} matches ({result.state.mode.value})')
    return _success(result, version)


@app.route('/api/matches/<match_id>/score', methods=['POST'])
def api_score_match(match_id):
    """Save the sets of a match and propagate the result."""
    data = request.get_json(silent=True) or {}
    try:
        sets = _parse_sets(data.get('sets'))
        required_wins = _int_field(data, 'required_wins')
    except (ValueError, KeyError, TypeError) as e:
        return jsonify({'error': str(e)}), 400

    def score(state):
        match = state.find_match(match_id)
        if required_wins and match is not None and required_wins != state.best_of:
            if not can_upgrade_best_of(match, state.best_of, state.rounds):
                raise TournamentStateError('This match cannot be played with a different number of sets')
        return engine.evaluate_score(state, match_id, sets, required_wins)

    return _run(data, score)


@app.route('/api/matches/<match_id>/activate', methods=['POST'])
def api_activate_match(match_id):
    """Start a match, optionally on a given table."""
    data = request.get_json(silent=True) or {}
    try:
        table = _int_field(data, 'table')
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    store = get_store()
    try:
        with store.transaction(_expected_version(data)) as (state, version):
            result = engine.activate_match(state, match_id, table)
            if not result.accepted:
                status = 404 if result.rejection.reason.value == 'unknown_match' else 409
                return jsonify({'error': result.rejection.message, 'rejection': result.rejection.to_dict()}), status
            version = store.apply_changes(result.changes, version)
    except StaleSnapshotError as e:
        return _engine_error(e)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return _success(result, version)


@app.route('/api/tables/auto-assign', methods=['POST'])
def api_auto_assign():
    """Put ready matches on all free tables."""
    return _run(request.get_json(silent=True) or {}, engine.auto_assign_tables)


@app.route('/api/matches/next', methods=['GET'])
def api_next_matches():
    """Ready matches waiting for a table."""
    limit = request.args.get('limit', type=int)
    state = get_store().fetch_tournament()
    return jsonify({'matches': [m.to_dict() for m in next_ready_matches(state.matches, limit)]})


@app.route('/api/standings', methods=['GET'])
def api_standings():
    """Standings of the pool, or of every group in a group stage."""
    state = get_store().fetch_tournament()
    group = request.args.get('group', type=int)

    try:
        if group is None and state.mode.value == 'group_knockout':
            groups = group_standings(state.matches)
            return jsonify({'groups': {
                str(number): [s.to_dict() for s in standings] for number, standings in groups.items()
            }})
        result = engine.compute_standings(state, group_number=group)
    except TournamentEngineError as e:
        return _engine_error(e)

    payload = {'standings': [s.to_dict() for s in result.standings]}
    if state.mode.value == 'swiss':
        payload['recommended_rounds'] = recommended_rounds(len(state.participants))
    return jsonify(payload)


@app.route('/api/tournament/advance', methods=['POST'])
def api_advance_to_knockout():
    """Promote the group qualifiers into the knockout bracket."""
    return _run(request.get_json(silent=True) or {}, engine.advance_group_to_knockout)


@app.route('/api/swiss/next-round', methods=['POST'])
def api_next_swiss_round():
    """Pair the next Swiss round."""
    return _run(request.get_json(silent=True) or {}, engine.generate_next_swiss_round)


@app.route('/api/reset', methods=['POST'])
def api_reset():
    """Clear all matches; participants and settings stay."""
    return _run(request.get_json(silent=True) or {}, engine.reset_tournament)


@app.route('/api/participants/validate', methods=['POST'])
def api_validate_participants():
    """Check a seeding list (or the stored participants) before generation."""
    data = request.get_json(silent=True) or {}
    if data.get('participants') is not None:
        participants = [Participant.from_dict(p) for p in data['participants']]
    else:
        participants = get_store().fetch_tournament().participants
    issues = validate_seeding(participants)
    return jsonify({
        'valid': not has_errors(issues),
        'issues': [issue.to_dict() for issue in issues],
    })


@app.route('/api/matches/upgraded', methods=['GET'])
def api_upgraded_matches():
    """Matches played to three winning sets although the tournament is set to two."""
    state = get_store().fetch_tournament()
    upgraded = [m.id for m in state.matches if is_upgraded_best_of(m, state.best_of)]
    return jsonify({'matches': upgraded})


@app.route('/api/health', methods=['GET'])
def api_health():
    return jsonify({'status': 'ok', 'time': datetime.now().isoformat()})


if __name__ == '__main__':
    debug = os.environ.get('FLASK_DEBUG', '0') == '1'
    app.run(debug=debug, host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
