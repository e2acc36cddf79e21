from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict, Any

from trivia import socketio, get_engine, get_flags
from trivia.services.rounds.engine import SubmitStatus
from trivia.services.rounds.errors import RoundConfigError
from trivia.services.rounds.question_types import config_for
from trivia.services.rounds.scheduler import end_round, lobby_room, schedule_round_timer


# lobby id -> {player id -> display name}; only used for end-condition checks
_lobby_players: Dict[str, Dict[str, str]] = {}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}

_ACCEPTED = (SubmitStatus.CORRECT, SubmitStatus.INCORRECT, SubmitStatus.SUBMITTED)


def _get_sid() -> str:
    return request.sid  # type: ignore


def _lobby_id(data) -> str:
    value = (data or {}).get('lobby_id')
    return str(value).strip().upper() if value else ''


def lobby_players(lobby_id: str):
    return list(_lobby_players.get(lobby_id, {}))


def clamp_round_duration(requested, config) -> int:
    """Clamp a client-requested duration (ms) to the configured bounds."""
    default = int(config.get('ROUND_DURATION_MS', 20000))
    low = int(config.get('MIN_ROUND_DURATION_MS', 1000))
    high = int(config.get('MAX_ROUND_DURATION_MS', 120000))
    if requested is None or isinstance(requested, bool):
        return default
    try:
        value = int(requested)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, value))


def _check_round_end(lobby_id: str) -> None:
    reason = get_engine().check_end(lobby_id, lobby_players(lobby_id))
    if reason:
        end_round(current_app._get_current_object(), lobby_id, reason)


def _remove_player(lobby_id: str, player_id: str) -> None:
    players = _lobby_players.get(lobby_id)
    if not players or player_id not in players:
        return
    players.pop(player_id, None)
    socketio.emit('player_left', {'lobbyId': lobby_id, 'playerId': player_id}, to=lobby_room(lobby_id), namespace='/ws')
    if not players:
        _lobby_players.pop(lobby_id, None)
        get_engine().clear_lobby(lobby_id)
        current_app.logger.info(f"[lobby-empty] lobby={lobby_id} state released")
        return
    # the players still present may now all be done
    _check_round_end(lobby_id)


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    _remove_player(ctx['lobby_id'], ctx['player_id'])


def handle_join_lobby(data):
    lobby_id = _lobby_id(data)
    player_id = (data or {}).get('player_id')
    if not lobby_id or not player_id:
        emit('error', {'message': 'lobby_id and player_id are required'})
        return
    player_id = str(player_id)
    name = str((data or {}).get('name') or player_id)

    room = lobby_room(lobby_id)
    join_room(room)
    _lobby_players.setdefault(lobby_id, {})[player_id] = name
    _sid_to_ctx[_get_sid()] = {'lobby_id': lobby_id, 'player_id': player_id}
    current_app.logger.info(f"[join] lobby={lobby_id} player={player_id} players={len(_lobby_players[lobby_id])}")

    engine = get_engine()
    payload = engine.round_payload(lobby_id)
    emit('joined', {
        'room': room,
        'lobbyId': lobby_id,
        'players': [{'id': pid, 'name': n} for pid, n in _lobby_players[lobby_id].items()],
        'filter': engine.filter_for(lobby_id),
        'round': payload.to_dict() if payload else None,
    })
    emit('player_joined', {'lobbyId': lobby_id, 'playerId': player_id, 'name': name}, to=room, include_self=False)


def handle_leave_lobby(data):
    lobby_id = _lobby_id(data)
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    room = lobby_room(lobby_id)
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx['lobby_id'] == lobby_id:
        _sid_to_ctx.pop(_get_sid(), None)
        _remove_player(lobby_id, ctx['player_id'])


def handle_set_filter(data):
    lobby_id = _lobby_id(data)
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    expression = (data or {}).get('expression')
    if expression is not None and not isinstance(expression, str):
        emit('error', {'message': 'expression must be a string'})
        return
    update = get_engine().set_filter(lobby_id, expression)
    emit('filter_updated', {'lobbyId': lobby_id, **update.to_dict()}, to=lobby_room(lobby_id))


def handle_start_round(data):
    lobby_id = _lobby_id(data)
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    app = current_app._get_current_object()
    duration_ms = clamp_round_duration((data or {}).get('duration_ms'), app.config)
    try:
        payload = get_engine().start(lobby_id, duration_ms)
    except RoundConfigError as exc:
        app.logger.warning(f"[round-start] lobby={lobby_id} rejected: {exc}")
        emit('error', {'message': str(exc)})
        return
    emit('round_started', payload.to_dict(), to=lobby_room(lobby_id))
    schedule_round_timer(app, lobby_id, payload.round_id, payload.duration_ms)


def handle_submit_answer(data):
    lobby_id = _lobby_id(data)
    player_id = (data or {}).get('player_id')
    if not lobby_id or not player_id:
        emit('error', {'message': 'lobby_id and player_id are required'})
        return
    player_id = str(player_id)

    engine = get_engine()
    result = engine.submit(lobby_id, player_id, (data or {}).get('value'))
    emit('answer_result', {'lobbyId': lobby_id, **result.to_dict()})
    if result.status not in _ACCEPTED:
        return

    progress = {'lobbyId': lobby_id, 'playerId': player_id, 'answered': True}
    entry = result.entry
    if entry is not None and config_for(entry.kind).reveals_on_submit:
        progress['isCorrect'] = entry.correct
        progress['attempts'] = entry.attempts
    emit('player_progress', progress, to=lobby_room(lobby_id))
    _check_round_end(lobby_id)


def handle_reset_lobby(data):
    lobby_id = _lobby_id(data)
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    get_engine().reset_lobby(lobby_id)
    emit('lobby_reset', {'lobbyId': lobby_id}, to=lobby_room(lobby_id))


def handle_flag_question(data):
    lobby_id = _lobby_id(data)
    player_id = (data or {}).get('player_id')
    if not lobby_id or not player_id:
        emit('error', {'message': 'lobby_id and player_id are required'})
        return
    player_id = str(player_id)

    question_id = (data or {}).get('question_id')
    if not question_id:
        # defaults to the question on screen
        payload = get_engine().round_payload(lobby_id)
        question_id = payload.question['id'] if payload else None
    result = get_flags().flag(
        question_id,
        player_id,
        player_name=_lobby_players.get(lobby_id, {}).get(player_id),
        reason=(data or {}).get('reason'),
        lobby_id=lobby_id,
    )
    emit('flag_result', {'questionId': question_id, **result.to_dict()})


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_lobby': handle_join_lobby,
    'leave_lobby': handle_leave_lobby,
    'set_filter': handle_set_filter,
    'start_round': handle_start_round,
    'submit_answer': handle_submit_answer,
    'reset_lobby': handle_reset_lobby,
    'flag_question': handle_flag_question,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')


def reset_lobby_state() -> None:
    """Forget every roster; used between tests."""
    _lobby_players.clear()
    _sid_to_ctx.clear()
