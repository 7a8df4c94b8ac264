from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from scoreboard import db
from scoreboard.models import User
from scoreboard.services.tracker import get_tracker

auth = Blueprint('auth', __name__)


def _credentials():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    return username, data.get('password') or ''


@auth.route('/users/add', methods=['POST'])
def add_operator():
    username, password = _credentials()
    if not username or not password:
        return jsonify({'error': 'Missing username or password'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already exists'}), 400

    operator = User(username=username)
    operator.set_password(password)
    db.session.add(operator)
    db.session.commit()
    current_app.logger.info(f"[operator-add] id={operator.id} username={username}")
    return jsonify({'message': 'Operator created', 'user': operator.to_dict()}), 201


@auth.route('/login', methods=['POST'])
def login():
    username, password = _credentials()
    operator = User.query.filter_by(username=username).first()
    if operator is None or not operator.check_password(password):
        return jsonify({'error': 'Invalid username or password'}), 401
    login_user(operator, remember=True)
    # Loading the scoreboard here starts the shared countdown for this operator
    tracker = get_tracker(operator.id)
    return jsonify({'user': operator.to_dict(), 'timer': tracker.timer_state()})


@auth.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict())


@auth.route('/logout')
@login_required
def logout():
    current_app.logger.info(f"[logout] operator={current_user.id}")
    logout_user()
    return jsonify({'message': 'Logged out'})
