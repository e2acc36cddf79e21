import time
from typing import Set, Tuple

from trivia import socketio
from .engine import TIMER


_scheduled_round_keys: Set[Tuple[str, str]] = set()


def lobby_room(lobby_id: str) -> str:
    return f"lobby:{lobby_id}"


def end_round(app, lobby_id: str, reason: str, round_id=None):
    """Finalize the lobby's round and broadcast the summary.

    Returns the summary, or None when the round had already ended (the timer
    and the last submission may race; only one of them gets a summary). With
    ``round_id`` only that round is ended, never one started after it.
    """
    engine = app.extensions['trivia_engine']
    summary = engine.finalize(lobby_id, reason, round_id=round_id)
    if summary is None:
        return None
    app.logger.info(
        f"[round-ended] lobby={lobby_id} round={summary.round_id} reason={reason} correct={summary.correct_count}"
    )
    socketio.emit('round_ended', summary.to_dict(), to=lobby_room(lobby_id), namespace='/ws')
    return summary


def schedule_round_timer(app, lobby_id: str, round_id: str, duration_ms: int) -> None:
    """Schedule the timer that ends ``round_id`` after ``duration_ms``.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (lobby, round)
    - On fire, only finalizes if ``round_id`` is still the lobby's active round
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    key = (lobby_id, round_id)
    if key in _scheduled_round_keys:
        app.logger.info(f"[timer-skip] lobby={lobby_id} round={round_id} already scheduled")
        return
    _scheduled_round_keys.add(key)

    delay = max(0, int(duration_ms)) / 1000.0
    app.logger.info(f"[timer-set] lobby={lobby_id} round={round_id} duration={duration_ms}ms")

    def _worker(expected_lobby: str, expected_round: str, delay_sec: float):
        # heartbeat sleep loop if enabled
        try:
            hb = float(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        except (TypeError, ValueError):
            hb = 0
        if hb > 0:
            slept = 0.0
            while slept < delay_sec:
                step = min(hb, delay_sec - slept)
                time.sleep(step)
                slept += step
                app.logger.info(
                    f"[timer-heartbeat] lobby={expected_lobby} round={expected_round} "
                    f"remaining={max(0.0, delay_sec - slept):.1f}s"
                )
        else:
            time.sleep(delay_sec)

        _scheduled_round_keys.discard((expected_lobby, expected_round))
        engine = app.extensions['trivia_engine']
        app.logger.info(f"[timer-fire] lobby={expected_lobby} expected_round={expected_round}")
        if not engine.is_active(expected_lobby, expected_round):
            app.logger.info(f"[timer-abort] lobby={expected_lobby} round={expected_round} no longer active")
            return
        with app.app_context():
            end_round(app, expected_lobby, TIMER, round_id=expected_round)

    if app.config.get('TESTING'):
        _worker(lobby_id, round_id, delay)
    else:
        socketio.start_background_task(_worker, lobby_id, round_id, delay)
