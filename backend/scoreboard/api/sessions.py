from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from scoreboard.api import register_error_handlers
from scoreboard.services.tracker import get_tracker


sessions = Blueprint('sessions', __name__)
register_error_handlers(sessions)


@sessions.route('/current', methods=['GET'])
@login_required
def current_game():
    return jsonify(get_tracker(current_user.id).sessions.to_dict())


@sessions.route('/start', methods=['POST'])
@login_required
def start_game():
    return jsonify(get_tracker(current_user.id).start_game()), 201


@sessions.route('/end', methods=['POST'])
@login_required
def end_game():
    data = request.get_json(silent=True) or {}
    save = bool(data.get('save', True))
    return jsonify(get_tracker(current_user.id).end_game(save=save))


@sessions.route('/history', methods=['GET'])
@login_required
def game_history():
    limit = request.args.get('limit', type=int)
    return jsonify({'games': get_tracker(current_user.id).game_history(limit)})


@sessions.route('/<string:session_id>', methods=['DELETE'])
@login_required
def delete_game(session_id):
    get_tracker(current_user.id).delete_game(session_id)
    return jsonify({'message': 'Game deleted'})
