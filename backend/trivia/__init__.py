from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'
    if isinstance(raw_origins, (list, tuple, set)):
        return [origin for origin in raw_origins if origin] or '*'
    origins = [origin.strip() for origin in str(raw_origins).split(',') if origin.strip()]
    return origins or '*'


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = _parse_allowed_origins(flask_app.config.get('CORS_ALLOWED_ORIGINS'))

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from trivia.main import main
    flask_app.register_blueprint(main)

    from trivia.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    from trivia.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # One engine per app; routes reach it through trivia.services.matches.get_engine()
    from trivia.services.matches.engine import MatchEngine
    flask_app.extensions['match_engine'] = MatchEngine.from_app(flask_app)

    from trivia.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from trivia.seed import seed_database
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            users, questions = seed_database()
            print(f'Database has been reset and seeded ({users} hosts, {questions} questions)!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
