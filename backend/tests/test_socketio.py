def test_socket_connect_and_ping(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)


def test_join_scoreboard_receives_score_events(sio_client, auth_client):
    team = auth_client.post('/api/teams', json={'name': 'Comets'}).get_json()

    sio_client.emit('join_scoreboard', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    joined = [pkt for pkt in received if pkt['name'] == 'joined']
    assert joined
    assert joined[0]['args'][0]['teams'][0]['name'] == 'Comets'

    auth_client.post(f"/api/teams/{team['id']}/score", json={'delta': 2})
    received = sio_client.get_received('/ws')
    names = [pkt['name'] for pkt in received]
    assert 'scores_changed' in names
    assert 'notification' in names
    assert 'leader_changed' in names


def test_join_requires_login(flask_app, client):
    from scoreboard import socketio as _sio
    anonymous = _sio.test_client(flask_app, flask_test_client=client, namespace='/ws')
    anonymous.get_received('/ws')
    anonymous.emit('join_scoreboard', {}, namespace='/ws')
    received = anonymous.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)
    anonymous.disconnect(namespace='/ws')
