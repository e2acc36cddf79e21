from flask import Blueprint, jsonify

from trivia import get_catalog

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'status': 'ok', 'service': 'trivia', 'questions': len(get_catalog())})
