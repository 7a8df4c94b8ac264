from flask import jsonify

from scoreboard.services.errors import InvalidTransition, SessionNotFound, StoreError, TeamNotFound


def register_error_handlers(blueprint):
    """Map service errors to JSON responses for every route on the blueprint."""

    @blueprint.errorhandler(ValueError)
    def _bad_request(exc):
        return jsonify({'error': str(exc)}), 400

    @blueprint.errorhandler(TeamNotFound)
    def _team_missing(exc):
        return jsonify({'error': 'Team not found'}), 404

    @blueprint.errorhandler(SessionNotFound)
    def _session_missing(exc):
        return jsonify({'error': 'Game not found'}), 404

    @blueprint.errorhandler(InvalidTransition)
    def _conflict(exc):
        return jsonify({'error': str(exc)}), 409

    @blueprint.errorhandler(StoreError)
    def _store_failed(exc):
        return jsonify({'error': str(exc)}), 503
