from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)


def get_engine(app=None):
    """Return the RoundEngine bound to ``app`` (or the current app)."""
    return (app or current_app).extensions['trivia_engine']


def get_catalog(app=None):
    return (app or current_app).extensions['trivia_catalog']


def get_flags(app=None):
    return (app or current_app).extensions['trivia_flags']


def create_app(config_class=Config, catalog=None):
    """Build the Flask app.

    ``catalog`` may be injected (tests use small fixture catalogs); otherwise
    it is loaded from QUESTIONS_PATH and a load failure aborts startup.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    from trivia.logging_config import configure_logging
    configure_logging(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from trivia.services.rounds.catalog import QuestionCatalog
    from trivia.services.rounds.engine import RoundEngine
    from trivia.services.rounds.flags import QuestionFlagRegistry

    if catalog is None:
        catalog = QuestionCatalog.from_path(flask_app.config['QUESTIONS_PATH'])
    flask_app.extensions['trivia_catalog'] = catalog
    flask_app.extensions['trivia_engine'] = RoundEngine(
        catalog,
        default_filter=flask_app.config.get('DEFAULT_QUESTION_FILTER', '*'),
    )
    flask_app.extensions['trivia_flags'] = QuestionFlagRegistry(catalog)
    flask_app.logger.info(f"[startup] catalog loaded questions={len(catalog)} kinds={catalog.kind_counts()}")

    # Import and register blueprints here
    from trivia.main import main
    flask_app.register_blueprint(main)

    from trivia.api.catalog import catalog_api
    flask_app.register_blueprint(catalog_api, url_prefix='/api')

    # Register Socket.IO event handlers
    from trivia.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('catalog-check')
    @click.option('--path', default=None, help='Question file or directory (defaults to QUESTIONS_PATH).')
    def catalog_check_command(path):
        """Loads the question catalog and prints per-kind and per-tag counts."""
        from trivia.services.rounds.errors import CatalogLoadError
        try:
            checked = QuestionCatalog.from_path(path) if path else get_catalog(flask_app)
        except CatalogLoadError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"{len(checked)} questions")
        for kind, count in checked.kind_counts().items():
            click.echo(f"  {kind}: {count}")
        click.echo('tags:')
        for tag, count in checked.tag_counts().items():
            click.echo(f"  {tag}: {count}")

    @click.command('filter-preview')
    @click.argument('expression')
    def filter_preview_command(expression):
        """Validates a tag-filter expression and shows how many questions match."""
        filter_engine = get_engine(flask_app).filter_engine
        validation = filter_engine.validate(expression)
        if not validation.valid:
            click.echo(f"invalid: {validation.error} (would match all questions)")
        matched = filter_engine.compile(expression)
        click.echo(f"{len(matched)} of {len(get_catalog(flask_app))} questions match {expression!r}")

    flask_app.cli.add_command(catalog_check_command)
    flask_app.cli.add_command(filter_preview_command)

    return flask_app
