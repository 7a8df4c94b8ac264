def _add(client, name, **extra):
    res = client.post('/api/teams', json={'name': name, **extra})
    assert res.status_code == 201
    return res.get_json()


def test_requires_login(client):
    assert client.get('/api/teams').status_code == 401
    assert client.post('/api/games/start').status_code == 401


def test_register_and_login(client):
    res = client.post('/users/add', json={'username': 'quizmaster', 'password': 'pw'})
    assert res.status_code == 201
    assert client.post('/users/add', json={'username': 'quizmaster', 'password': 'pw'}).status_code == 400
    assert client.post('/login', json={'username': 'quizmaster', 'password': 'nope'}).status_code == 401
    res = client.post('/login', json={'username': 'quizmaster', 'password': 'pw'})
    assert res.status_code == 200
    assert client.get('/me').get_json()['username'] == 'quizmaster'


def test_add_list_rename_pin_delete(auth_client):
    lions = _add(auth_client, 'Lions', emoji='🦁')
    tigers = _add(auth_client, 'Tigers')
    assert tigers['emoji'] == '⚽'
    assert auth_client.post('/api/teams', json={'name': ' '}).status_code == 400

    res = auth_client.patch(f"/api/teams/{tigers['id']}", json={'name': 'Big Cats', 'is_pinned': True})
    assert res.status_code == 200
    assert res.get_json()['name'] == 'Big Cats'

    listing = auth_client.get('/api/teams').get_json()
    assert [t['name'] for t in listing['teams']] == ['Big Cats', 'Lions']
    assert listing['stats']['teams'] == 2

    assert auth_client.delete(f"/api/teams/{lions['id']}").status_code == 200
    assert auth_client.delete(f"/api/teams/{lions['id']}").status_code == 404


def test_score_card_reset_and_undo_flow(auth_client):
    team = _add(auth_client, 'Owls')
    tid = team['id']

    res = auth_client.post(f'/api/teams/{tid}/score', json={'delta': 3, 'answer': 'correct'})
    assert res.get_json()['score'] == 3
    assert res.get_json()['correct_answers'] == 1

    res = auth_client.post(f'/api/teams/{tid}/score', json={'delta': -5})
    assert res.get_json()['score'] == -2

    res = auth_client.post(f'/api/teams/{tid}/card', json={'card': 'yellow'})
    assert res.get_json()['score'] == -3
    res = auth_client.post(f'/api/teams/{tid}/card', json={'card': 'red'})
    assert res.get_json()['score'] == -5

    res = auth_client.post(f'/api/teams/{tid}/undo')
    assert res.get_json()['undone'] is True
    assert res.get_json()['team']['score'] == -3
    res = auth_client.post(f'/api/teams/{tid}/undo')
    assert res.status_code == 200
    assert res.get_json()['undone'] is False

    res = auth_client.post(f'/api/teams/{tid}/reset')
    assert res.get_json()['score'] == 0

    history = auth_client.get(f'/api/teams/{tid}/history?limit=3').get_json()['history']
    assert [h['change_type'] for h in history] == ['reset', 'red_card', 'yellow_card']
    assert history[0]['previous_score'] == -3


def test_bad_score_requests(auth_client):
    tid = _add(auth_client, 'Hawks')['id']
    assert auth_client.post(f'/api/teams/{tid}/score', json={}).status_code == 400
    assert auth_client.post(f'/api/teams/{tid}/score', json={'delta': 'x'}).status_code == 400
    assert auth_client.post(f'/api/teams/{tid}/score', json={'delta': 1, 'answer': 'maybe'}).status_code == 400
    assert auth_client.post(f'/api/teams/{tid}/card', json={'card': 'green'}).status_code == 400
    assert auth_client.post('/api/teams/nope/score', json={'delta': 1}).status_code == 404


def test_operator_wide_undo(auth_client):
    a = _add(auth_client, 'A')
    b = _add(auth_client, 'B')
    auth_client.post(f"/api/teams/{a['id']}/score", json={'delta': 1})
    auth_client.post(f"/api/teams/{b['id']}/score", json={'delta': 2})
    res = auth_client.post('/api/teams/undo').get_json()
    assert res['undone'] is True
    assert res['team']['id'] == b['id']
    assert res['team']['score'] == 0


def test_leaderboard_positions(auth_client):
    a = _add(auth_client, 'A')
    b = _add(auth_client, 'B')
    c = _add(auth_client, 'C')
    for team, delta in ((a, 10), (b, 10), (c, 7)):
        auth_client.post(f"/api/teams/{team['id']}/score", json={'delta': delta})
    board = auth_client.get('/api/teams/leaderboard').get_json()['leaderboard']
    assert [(row['name'], row['rank'], row['is_leader']) for row in board] == [
        ('A', 1, True), ('B', 2, False), ('C', 3, False),
    ]


def test_game_save_and_history(auth_client):
    a = _add(auth_client, 'A')
    b = _add(auth_client, 'B')
    auth_client.post(f"/api/teams/{b['id']}/score", json={'delta': 2})

    assert auth_client.post('/api/games/end', json={'save': True}).status_code == 409
    res = auth_client.post('/api/games/start')
    assert res.status_code == 201
    session_id = res.get_json()['session_id']
    assert auth_client.post('/api/games/start').status_code == 409
    assert auth_client.get('/api/games/current').get_json()['state'] == 'active'

    ended = auth_client.post('/api/games/end', json={'save': True}).get_json()
    assert ended['saved'] is True
    assert ended['winner']['team_name'] == 'B'
    assert [r['rank'] for r in ended['results']] == [1, 2]

    games = auth_client.get('/api/games/history').get_json()['games']
    assert len(games) == 1
    assert games[0]['id'] == session_id
    assert [r['team_id'] for r in games[0]['results']] == [b['id'], a['id']]

    assert auth_client.delete(f'/api/games/{session_id}').status_code == 200
    assert auth_client.get('/api/games/history').get_json()['games'] == []
    assert auth_client.delete(f'/api/games/{session_id}').status_code == 404


def test_game_discard_then_restart(auth_client):
    _add(auth_client, 'A')
    first = auth_client.post('/api/games/start').get_json()['session_id']
    ended = auth_client.post('/api/games/end', json={'save': False}).get_json()
    assert ended['state'] == 'discarded'
    assert auth_client.get('/api/games/history').get_json()['games'] == []
    second = auth_client.post('/api/games/start').get_json()['session_id']
    assert second != first


def test_timer_endpoints(auth_client):
    assert auth_client.get('/api/timer').get_json()['remaining'] == 10
    state = auth_client.post('/api/timer/set', json={'minutes': 150, 'seconds': 75}).get_json()
    assert state['remaining'] == 99 * 60 + 59
    assert auth_client.post('/api/timer/pause').get_json()['paused'] is True
    assert auth_client.post('/api/timer/resume').get_json()['paused'] is False
    assert auth_client.post('/api/timer/toggle').get_json()['paused'] is True
    assert auth_client.post('/api/timer/reset').get_json()['remaining'] == 0
    assert auth_client.post('/api/timer/set', json={'minutes': 'x'}).status_code == 400


def test_login_loads_scoreboard_and_logout_ends_access(client, operator):
    res = client.post('/login', json={'username': ' host ', 'password': 'password'})
    assert res.status_code == 200
    assert res.get_json()['user']['username'] == 'host'
    assert res.get_json()['timer']['remaining'] == 10
    assert client.post('/users/add', json={'username': ' ', 'password': 'pw'}).status_code == 400

    assert client.get('/logout').status_code == 200
    assert client.get('/me').status_code == 401
    assert client.get('/api/teams').status_code == 401
