import os
import sys
import pytest

# Ensure the backend root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia import create_app, socketio
from trivia.services.rounds.catalog import QuestionCatalog


QUESTION_RECORDS = [
    {
        'id': 'ft-kanye',
        'type': 'free-text',
        'title': 'Who released "Graduation" in 2007?',
        'tags': ['artist', 'rap', 'only-kanye'],
        'answers': [
            {
                'id': 'kanye',
                'display': 'Kanye West',
                'entityRef': 'artist:kanye-west',
                'aliases': ['Ye', 'Kanye'],
            }
        ],
    },
    {
        'id': 'ft-literal',
        'type': 'free-text',
        'title': 'Name the song with the lyric "Stronger".',
        'tags': ['lyrics', 'rap', 'only-literal'],
        'answers': [{'display': 'Stronger', 'aliases': ['Strong']}],
    },
    {
        'id': 'mc-capital',
        'type': 'multiple-choice',
        'title': 'Which city hosted the first Lollapalooza?',
        'tags': ['festival', 'only-mc'],
        'choices': [
            {'id': 'a', 'text': 'Chicago'},
            {'id': 'b', 'text': 'Tinley Park', 'correct': True},
            {'id': 'c', 'text': 'Austin'},
            {'id': 'd', 'text': 'Seattle'},
        ],
    },
    {
        'id': 'tf-beatles',
        'type': 'true-false',
        'title': 'The Beatles came from Liverpool.',
        'tags': ['artist', 'rock', 'only-tf'],
        'correctAnswer': True,
    },
    {
        'id': 'num-thriller',
        'type': 'numeric',
        'title': 'In what year was "Thriller" released?',
        'tags': ['album', 'only-numeric'],
        'correctAnswer': 1982,
        'min': 1960,
        'max': 2000,
    },
    {
        'id': 'me-beatles',
        'type': 'multi-entry',
        'title': 'Name the members of The Beatles.',
        'tags': ['artist', 'rock', 'only-multi'],
        'maxGuesses': 6,
        'answers': [
            {'id': 'john', 'display': 'John Lennon', 'entityRef': 'p:john', 'aliases': ['Lennon']},
            {'id': 'paul', 'display': 'Paul McCartney', 'entityRef': 'p:paul', 'aliases': ['McCartney']},
            {'id': 'george', 'display': 'George Harrison', 'entityRef': 'p:george', 'aliases': ['Harrison']},
            {'id': 'ringo', 'display': 'Ringo Starr', 'entityRef': 'p:ringo', 'aliases': ['Starr']},
        ],
    },
    {
        'id': 'ol-queen',
        'type': 'ordered-list',
        'title': 'Order these Queen singles by release.',
        'tags': ['rock', 'only-ordered'],
        'items': [
            {'id': 'bohemian', 'text': 'Bohemian Rhapsody'},
            {'id': 'champions', 'text': 'We Are the Champions'},
            {'id': 'radio', 'text': 'Radio Ga Ga'},
        ],
        'correctOrder': ['bohemian', 'champions', 'radio'],
    },
]


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    QUESTIONS_PATH = os.path.join(BACKEND_ROOT, 'data', 'questions')
    ROUND_DURATION_MS = 20000
    MIN_ROUND_DURATION_MS = 1000
    MAX_ROUND_DURATION_MS = 120000
    DEFAULT_QUESTION_FILTER = '*'
    CORS_ORIGINS = ['http://localhost:5173']
    LOG_LEVEL = 'INFO'
    TIMER_HEARTBEAT_SEC = 0


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


@pytest.fixture()
def question_records():
    return [dict(record) for record in QUESTION_RECORDS]


@pytest.fixture()
def catalog(question_records):
    return QuestionCatalog.from_records(question_records)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def flask_app(catalog):
    application = create_app(TestConfig, catalog=catalog)
    with application.app_context():
        yield application
    from trivia.socketio_events import reset_lobby_state
    reset_lobby_state()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
