from flask_login import current_user
from flask_socketio import join_room, leave_room, emit
from scoreboard import socketio
from scoreboard.services.notifications import operator_room
from scoreboard.services.tracker import get_tracker


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_scoreboard(data=None):
    # Operators only ever receive their own room
    if not current_user.is_authenticated:
        emit('error', {'message': 'login required'})
        return
    room = operator_room(current_user.id)
    join_room(room)
    tracker = get_tracker(current_user.id)
    emit('joined', {
        'room': room,
        'teams': [t.to_dict() for t in tracker.teams()],
        'timer': tracker.timer_state(),
        'game': tracker.sessions.to_dict(),
    })


def handle_leave_scoreboard(data=None):
    if not current_user.is_authenticated:
        emit('error', {'message': 'login required'})
        return
    room = operator_room(current_user.id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_scoreboard', handle_join_scoreboard, namespace='/ws')
    socketio.on_event('leave_scoreboard', handle_leave_scoreboard, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_scoreboard', handle_join_scoreboard, namespace='/')
        socketio.on_event('leave_scoreboard', handle_leave_scoreboard, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
