from flask import Blueprint, jsonify, request, current_app

from trivia import get_catalog, get_engine, get_flags


catalog_api = Blueprint('catalog_api', __name__)


@catalog_api.route('/catalog/stats', methods=['GET'])
def catalog_stats():
    catalog = get_catalog()
    return jsonify({
        'total': len(catalog),
        'kinds': catalog.kind_counts(),
        'tags': catalog.tag_counts(),
    }), 200


@catalog_api.route('/catalog/filter', methods=['POST'])
def preview_filter():
    data = request.get_json(silent=True) or {}
    expression = data.get('expression', '*')
    if expression is not None and not isinstance(expression, str):
        return jsonify({'error': 'expression must be a string'}), 400

    filter_engine = get_engine().filter_engine
    validation = filter_engine.validate(expression)
    stats = filter_engine.statistics(expression)
    if not validation.valid:
        current_app.logger.info(f"[filter-preview] invalid expression={expression!r} error={validation.error}")
    return jsonify({**validation.to_dict(), **stats}), 200


@catalog_api.route('/catalog/questions/<question_id>', methods=['GET'])
def get_question(question_id):
    question = get_catalog().by_id(question_id)
    if question is None:
        return jsonify({'error': 'Question not found'}), 404
    return jsonify(question.to_client_dict()), 200


@catalog_api.route('/catalog/flags', methods=['GET'])
def list_flags():
    flagged = get_flags().flagged()
    return jsonify({'total': len(flagged), 'questions': flagged}), 200


@catalog_api.route('/catalog/flags/<question_id>', methods=['DELETE'])
def clear_flags(question_id):
    if not get_flags().clear(question_id):
        return jsonify({'error': 'Question has no flags'}), 404
    return jsonify({'cleared': question_id}), 200


@catalog_api.route('/rounds/<lobby_id>', methods=['GET'])
def get_round(lobby_id):
    payload = get_engine().round_payload(lobby_id)
    if payload is None:
        return jsonify({'error': 'No active round'}), 404
    return jsonify(payload.to_dict()), 200
