from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from datetime import datetime, timedelta, timezone
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, origins=allowed_origins)

    # Import and register blueprints here
    from namegame.main import main
    flask_app.register_blueprint(main)

    from namegame.api.game import game
    # Mount game routes under /api/game to match the frontend client
    flask_app.register_blueprint(game, url_prefix='/api/game')

    from namegame.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.exception(f"[error] {type(exc).__name__}: {exc.message}")
        else:
            flask_app.logger.info(f"[rejected] {type(exc).__name__} status={exc.status_code}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database tables."""
        import namegame.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('purge-sessions')
    @click.option('--hours', type=int, default=None, help='Delete sessions older than this many hours.')
    def purge_sessions_command(hours):
        """Deletes old sessions with their members and submissions."""
        from namegame.store import SessionStore
        max_age = hours if hours is not None else flask_app.config.get('SESSION_MAX_AGE_HOURS', 24)
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age)
        with flask_app.app_context():
            removed = SessionStore(db.session).delete_sessions_before(cutoff)
            flask_app.logger.info(f"[purge] removed={removed} older_than={max_age}h")
            click.echo(f'Removed {removed} session(s) older than {max_age}h.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_sessions_command)

    return flask_app
