def _create(client, **overrides):
    body = {
        'title': 'Presidential Election',
        'candidates': ['Gerry', 'Alex'],
        'voteThreshold': 2,
        'entryBonus': 200,
        'voteCost': 50,
    }
    body.update(overrides)
    res = client.post('/elections', json=body)
    assert res.status_code == 201
    return res.get_json()


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'Election Room' in res.get_json()['message']


def test_create_and_list_elections(client):
    visible = _create(client)
    hidden = _create(client, title='Secret', isVisible=False)
    assert visible['status'] == 'open'
    assert visible['voteCounts'] == {'Gerry': 0, 'Alex': 0}

    listed = client.get('/elections').get_json()
    assert [e['id'] for e in listed] == [visible['id']]
    everything = client.get('/elections/all').get_json()
    assert {e['id'] for e in everything} == {visible['id'], hidden['id']}


def test_create_election_validation(client):
    res = client.post('/elections', json={'title': 'Bad', 'candidates': []})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INVALID_REQUEST'


def test_toggle_visibility(client):
    election = _create(client)
    res = client.patch(f"/elections/{election['id']}/visibility", json={'isVisible': False})
    assert res.status_code == 200
    assert res.get_json()['isVisible'] is False
    assert client.get('/elections').get_json() == []

    assert client.patch(f"/elections/{election['id']}/visibility", json={}).status_code == 400
    assert client.patch('/elections/nope/visibility', json={'isVisible': True}).status_code == 404


def test_votes_accepts_legacy_id(client):
    election = _create(client, legacyId='1')
    res = client.get('/votes/1')
    assert res.status_code == 200
    assert res.get_json() == {
        'votes': {'Gerry': 0, 'Alex': 0},
        'threshold': 2,
        'winner': None,
        'status': 'open',
        'voteCost': 50,
    }
    assert client.get(f"/votes/{election['id']}").get_json()['threshold'] == 2
    assert client.get('/votes/unknown').status_code == 404


def test_payouts_get_creates_record_once(client):
    election = _create(client)
    first = client.get(f"/payouts/{election['id']}/Alice")
    assert first.status_code == 200
    body = first.get_json()
    assert set(body['payouts']) == {'Gerry', 'Alex'}
    assert body['hasVoted'] is False
    second = client.get(f"/payouts/{election['id']}/Alice").get_json()
    assert second['payouts'] == body['payouts']
    assert client.get('/payouts/unknown/Alice').status_code == 404


def test_stake_flow_and_errors(client):
    election = _create(client, voteThreshold=5)
    eid = election['id']
    res = client.post('/stake', json={'username': 'Alice', 'electionId': eid, 'candidate': 'Gerry', 'amount': 50})
    assert res.status_code == 200
    assert res.get_json() == {'success': True, 'balance': 950, 'winner': None}

    again = client.post('/stake', json={'username': 'Alice', 'electionId': eid, 'candidate': 'Alex', 'amount': 50})
    assert again.status_code == 400
    assert 'already voted' in again.get_json()['error']

    bad = client.post('/stake', json={'username': 'Bob', 'electionId': eid, 'candidate': 'Nobody', 'amount': 50})
    assert bad.status_code == 400

    missing = client.post('/stake', json={'username': 'Bob', 'electionId': 'nope', 'candidate': 'Gerry'})
    assert missing.status_code == 404

    votes = client.get(f"/votes/{eid}").get_json()
    assert votes['votes'] == {'Gerry': 1, 'Alex': 0}
    users = {u['username']: u['balance'] for u in client.get('/users').get_json()}
    assert users == {'Alice': 950}


def test_stake_insufficient_funds(client):
    election = _create(client, voteCost=5000)
    res = client.post('/stake', json={'username': 'Alice', 'electionId': election['id'], 'candidate': 'Gerry'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INSUFFICIENT_FUNDS'
    assert client.get(f"/votes/{election['id']}").get_json()['votes'] == {'Gerry': 0, 'Alex': 0}


def test_resolve_endpoint(client):
    election = _create(client)
    eid = election['id']
    assert client.post('/resolve', json={'electionId': 'nope', 'winner': 'Gerry'}).status_code == 404

    res = client.post('/resolve', json={'electionId': eid, 'winner': 'Alex'})
    assert res.status_code == 200
    assert res.get_json() == {'success': True, 'winner': 'Alex', 'results': []}
    votes = client.get(f"/votes/{eid}").get_json()
    assert votes['status'] == 'closed'
    assert votes['winner'] == 'Alex'

    closed = client.post('/stake', json={'username': 'Alice', 'electionId': eid, 'candidate': 'Alex'})
    assert closed.status_code == 400
    assert closed.get_json()['error'] == 'Election is closed'


def test_threshold_scenario_over_http(client):
    election = _create(client, voteThreshold=2)
    eid = election['id']
    alice = client.get(f"/payouts/{eid}/Alice").get_json()['payouts']
    bob = client.get(f"/payouts/{eid}/Bob").get_json()['payouts']

    client.post('/stake', json={'username': 'Alice', 'electionId': eid, 'candidate': 'Gerry'})
    res = client.post('/stake', json={'username': 'Bob', 'electionId': eid, 'candidate': 'Gerry'})
    assert res.get_json()['winner'] == 'Gerry'

    users = {u['username']: u['balance'] for u in client.get('/users').get_json()}
    assert users['Alice'] == 950 + alice['Gerry']
    assert users['Bob'] == 950 + bob['Gerry']
    assert client.get(f"/payouts/{eid}/Bob").get_json()['hasVoted'] is True


def test_messages_endpoint(client):
    election = _create(client)
    assert client.get(f"/messages/{election['id']}").get_json() == []
    assert client.get('/messages/unknown').status_code == 404


def test_transfer(client):
    res = client.post('/transfer', json={'from': 'Alice', 'to': 'Bob', 'amount': 300})
    assert res.status_code == 200
    balances = {u['username']: u['balance'] for u in res.get_json()['balances']}
    assert balances == {'Alice': 700, 'Bob': 1300}

    broke = client.post('/transfer', json={'from': 'Alice', 'to': 'Bob', 'amount': 10000})
    assert broke.status_code == 400
    assert broke.get_json()['code'] == 'INSUFFICIENT_FUNDS'
