import os

BACKEND_ROOT = os.path.dirname(os.path.abspath(__file__))


def _origins(value):
    return [o.strip() for o in value.split(',') if o.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Question data: one aggregate JSON file or a directory of per-generator files
    QUESTIONS_PATH = os.environ.get('QUESTIONS_PATH') or os.path.join(BACKEND_ROOT, 'data', 'questions')
    # Round timer (milliseconds); client-requested durations are clamped to the bounds
    ROUND_DURATION_MS = int(os.environ.get('ROUND_DURATION_MS', '20000'))
    MIN_ROUND_DURATION_MS = int(os.environ.get('MIN_ROUND_DURATION_MS', '1000'))
    MAX_ROUND_DURATION_MS = int(os.environ.get('MAX_ROUND_DURATION_MS', '120000'))
    # Tag filter applied to lobbies that never set one
    DEFAULT_QUESTION_FILTER = os.environ.get('DEFAULT_QUESTION_FILTER', '*')
    CORS_ORIGINS = _origins(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
    ))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
