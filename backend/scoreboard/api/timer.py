from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from scoreboard.api import register_error_handlers
from scoreboard.services.tracker import get_tracker


timer = Blueprint('timer', __name__)
register_error_handlers(timer)


def _clamped(data, key, upper):
    try:
        value = int(data.get(key, 0) or 0)
    except (TypeError, ValueError):
        raise ValueError(f'{key} must be an integer')
    return max(0, min(upper, value))


@timer.route('', methods=['GET'])
@login_required
def timer_state():
    return jsonify(get_tracker(current_user.id).timer_state())


@timer.route('/pause', methods=['POST'])
@login_required
def pause():
    return jsonify(get_tracker(current_user.id).pause_timer())


@timer.route('/resume', methods=['POST'])
@login_required
def resume():
    return jsonify(get_tracker(current_user.id).resume_timer())


@timer.route('/toggle', methods=['POST'])
@login_required
def toggle():
    return jsonify(get_tracker(current_user.id).toggle_timer())


@timer.route('/reset', methods=['POST'])
@login_required
def reset():
    return jsonify(get_tracker(current_user.id).reset_timer())


@timer.route('/set', methods=['POST'])
@login_required
def set_time():
    data = request.get_json(silent=True) or {}
    minutes = _clamped(data, 'minutes', 99)
    seconds = _clamped(data, 'seconds', 59)
    return jsonify(get_tracker(current_user.id).set_timer(minutes, seconds))
