from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from scoreboard.api import register_error_handlers
from scoreboard.services.tracker import get_tracker


teams = Blueprint('teams', __name__)
register_error_handlers(teams)


def _int_arg(data, key, default=None):
    value = data.get(key, default)
    if value is None:
        raise ValueError(f'{key} is required')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{key} must be an integer')


def _team_payload(team):
    if team is None:
        return jsonify({'error': 'Team was removed before the change completed'}), 409
    return jsonify(team.to_dict())


@teams.route('', methods=['GET'])
@login_required
def list_teams():
    tracker = get_tracker(current_user.id)
    return jsonify({
        'teams': [t.to_dict() for t in tracker.teams()],
        'stats': tracker.stats(),
    })


@teams.route('', methods=['POST'])
@login_required
def add_team():
    data = request.get_json(silent=True) or {}
    team = get_tracker(current_user.id).add_team(data.get('name'), data.get('emoji'))
    return jsonify(team.to_dict()), 201


@teams.route('/leaderboard', methods=['GET'])
@login_required
def leaderboard():
    return jsonify({'leaderboard': get_tracker(current_user.id).leaderboard()})


@teams.route('/stats', methods=['GET'])
@login_required
def stats():
    return jsonify(get_tracker(current_user.id).stats())


@teams.route('/undo', methods=['POST'])
@login_required
def undo_latest():
    team = get_tracker(current_user.id).undo()
    if team is None:
        return jsonify({'undone': False, 'message': 'Nothing to undo'})
    return jsonify({'undone': True, 'team': team.to_dict()})


@teams.route('/<string:team_id>', methods=['PATCH'])
@login_required
def update_team(team_id):
    data = request.get_json(silent=True) or {}
    tracker = get_tracker(current_user.id)
    if 'name' not in data and 'is_pinned' not in data:
        raise ValueError('Nothing to update')
    team = tracker.get_team(team_id)
    if 'name' in data:
        team = tracker.rename_team(team_id, data['name'])
    if 'is_pinned' in data:
        team = tracker.set_pinned(team_id, bool(data['is_pinned']))
    return jsonify(team.to_dict())


@teams.route('/<string:team_id>', methods=['DELETE'])
@login_required
def delete_team(team_id):
    get_tracker(current_user.id).delete_team(team_id)
    return jsonify({'message': 'Team removed'})


@teams.route('/<string:team_id>/score', methods=['POST'])
@login_required
def change_score(team_id):
    data = request.get_json(silent=True) or {}
    delta = _int_arg(data, 'delta')
    team = get_tracker(current_user.id).change_score(team_id, delta, data.get('answer'))
    return _team_payload(team)


@teams.route('/<string:team_id>/reset', methods=['POST'])
@login_required
def reset_score(team_id):
    return _team_payload(get_tracker(current_user.id).reset_score(team_id))


@teams.route('/<string:team_id>/card', methods=['POST'])
@login_required
def card_penalty(team_id):
    data = request.get_json(silent=True) or {}
    card = data.get('card')
    if card not in ('yellow', 'red'):
        raise ValueError("card must be 'yellow' or 'red'")
    return _team_payload(get_tracker(current_user.id).card_penalty(team_id, card))


@teams.route('/<string:team_id>/undo', methods=['POST'])
@login_required
def undo_team(team_id):
    team = get_tracker(current_user.id).undo(team_id)
    if team is None:
        return jsonify({'undone': False, 'message': 'Nothing to undo'})
    return jsonify({'undone': True, 'team': team.to_dict()})


@teams.route('/<string:team_id>/history', methods=['GET'])
@login_required
def team_history(team_id):
    limit = request.args.get('limit', type=int)
    offset = request.args.get('offset', default=0, type=int)
    entries = get_tracker(current_user.id).history(team_id, limit=limit, offset=offset)
    return jsonify({'history': entries})
