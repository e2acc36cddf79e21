def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert res.get_json()['questions'] == 7


def test_catalog_stats(client):
    res = client.get('/api/catalog/stats')
    assert res.status_code == 200
    data = res.get_json()
    assert data['total'] == 7
    assert data['kinds']['free-text'] == 2
    assert data['tags']['rock'] == 3


def test_filter_preview(client):
    res = client.post('/api/catalog/filter', json={'expression': 'artist & !rock'})
    assert res.status_code == 200
    data = res.get_json()
    assert data['valid'] is True
    assert data['total'] == 1


def test_filter_preview_invalid_expression_fails_open(client):
    data = client.post('/api/catalog/filter', json={'expression': '(rock'}).get_json()
    assert data['valid'] is False
    assert 'error' in data
    assert data['total'] == 7


def test_filter_preview_rejects_non_string(client):
    res = client.post('/api/catalog/filter', json={'expression': 42})
    assert res.status_code == 400


def test_question_projection_hides_answers(client):
    res = client.get('/api/catalog/questions/mc-capital')
    assert res.status_code == 200
    data = res.get_json()
    assert data['type'] == 'multiple-choice'
    assert [c['id'] for c in data['choices']] == ['a', 'b', 'c', 'd']
    assert all('correct' not in c for c in data['choices'])

    data = client.get('/api/catalog/questions/ft-kanye').get_json()
    assert 'answers' not in data
    assert 'Kanye West' not in str(data)


def test_unknown_question(client):
    assert client.get('/api/catalog/questions/nope').status_code == 404


def test_round_lookup(flask_app, client):
    assert client.get('/api/rounds/L1').status_code == 404

    engine = flask_app.extensions['trivia_engine']
    engine.set_filter('L1', 'only-numeric')
    payload = engine.start('L1', 5000)

    res = client.get('/api/rounds/L1')
    assert res.status_code == 200
    data = res.get_json()
    assert data['roundId'] == payload.round_id
    assert data['question']['min'] == 1960
    assert 'correctAnswer' not in data['question']


def test_flag_listing_and_clearing(flask_app, client):
    assert client.get('/api/catalog/flags').get_json() == {'total': 0, 'questions': []}

    flags = flask_app.extensions['trivia_flags']
    flags.flag('mc-capital', 'p1', reason='two right answers')
    flags.flag('mc-capital', 'p2')

    data = client.get('/api/catalog/flags').get_json()
    assert data['total'] == 1
    assert data['questions'][0]['questionId'] == 'mc-capital'
    assert data['questions'][0]['flagCount'] == 2

    res = client.delete('/api/catalog/flags/mc-capital')
    assert res.status_code == 200
    assert client.get('/api/catalog/flags').get_json()['total'] == 0
    assert client.delete('/api/catalog/flags/mc-capital').status_code == 404


def test_cli_catalog_check(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['catalog-check'])
    assert result.exit_code == 0
    assert '7 questions' in result.output


def test_cli_catalog_check_bad_path(flask_app, tmp_path):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['catalog-check', '--path', str(tmp_path / 'missing')])
    assert result.exit_code != 0


def test_cli_filter_preview(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['filter-preview', 'rap'])
    assert result.exit_code == 0
    assert '2 of 7 questions' in result.output
