from scoreboard import socketio


def operator_room(operator_id) -> str:
    return f"operator:{operator_id}"


class Notifier:
    """Pushes scoreboard events to the operator's Socket.IO room on /ws."""

    namespace = '/ws'

    def __init__(self, operator_id):
        self.room = operator_room(operator_id)

    def emit(self, event: str, payload: dict) -> None:
        socketio.emit(event, payload, to=self.room, namespace=self.namespace)

    def notify(self, title: str, description: str, variant: str = 'default', duration: int = 2000) -> None:
        self.emit('notification', {
            'title': title,
            'description': description,
            'variant': variant,
            'duration': duration,
        })

    def error(self, description: str) -> None:
        self.notify('Error', description, variant='destructive', duration=5000)
