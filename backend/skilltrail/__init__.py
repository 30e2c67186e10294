import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, scheduler=None, rng=None):
    """Build the Flask app, the Socket.IO server and the in-memory game service.

    `scheduler` and `rng` default to the Socket.IO background-task scheduler
    and a fresh `random.Random`; tests pass their own to control time and
    shuffling.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(
        flask_app,
        cors_allowed_origins=allowed_origins,
        max_http_buffer_size=flask_app.config.get('MAX_AVATAR_BYTES', 2 * 1000 * 1000),
    )

    # Imported here so the services bind to the initialized socketio instance
    from skilltrail.services.games.broadcast import SocketIOBroadcaster
    from skilltrail.services.games.errors import RulesError
    from skilltrail.services.games.rules import load_rules
    from skilltrail.services.games.scheduler import SocketIOScheduler
    from skilltrail.services.games.service import GameService
    from skilltrail.services.games.settings import GameSettings

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    rules = load_rules(flask_app.config['RULES_PATH'])
    flask_app.logger.info(
        f"[rules] skills={len(rules.skills)} situations={len(rules.situations)} rounds={rules.number_of_rounds}"
    )
    flask_app.extensions['skilltrail'] = GameService(
        rules=rules,
        broadcaster=SocketIOBroadcaster(socketio, namespace=namespace),
        scheduler=scheduler or SocketIOScheduler(socketio, flask_app.logger),
        settings=GameSettings.from_config(flask_app.config),
        logger=flask_app.logger,
        rng=rng,
    )

    from skilltrail.main import main
    flask_app.register_blueprint(main)

    from skilltrail.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    from skilltrail.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace)

    @click.command('rules-check')
    @click.option('--path', default=None, help='Rules file to check (defaults to RULES_PATH).')
    def rules_check_command(path):
        """Validates a rules file and prints a summary."""
        target = path or flask_app.config['RULES_PATH']
        try:
            checked = load_rules(target)
        except RulesError as exc:
            raise click.ClickException(exc.message)
        click.echo(f'{target}: OK')
        click.echo(f'  skills: {len(checked.skills)}')
        click.echo(f'  situations: {len(checked.situations)}')
        click.echo(f'  rounds: {checked.number_of_rounds}, seconds per round: {checked.seconds_per_round}, '
                   f'trail bonus: {checked.trail_bonus}')

    flask_app.cli.add_command(rules_check_command)

    return flask_app
