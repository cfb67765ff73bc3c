from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
import click
from config import Config
from election_room.locks import KeyedLocks

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)
# Process-wide mutual exclusion for elections and accounts
entity_locks = KeyedLocks()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    from election_room.services.elections.payouts import strategy
    # Fail at startup rather than on the first join
    strategy(flask_app.config.get('PAYOUT_STRATEGY'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from election_room.routes import main
    flask_app.register_blueprint(main)

    from election_room.api.elections import elections
    # Election routes are mounted at the root to match the browser client
    flask_app.register_blueprint(elections)

    from election_room.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from election_room.errors import AppError

    @flask_app.errorhandler(AppError)
    def handle_app_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[storage] {exc.__class__.__name__}")
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL'}), 500

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from election_room.models import Account, Election
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            starting = flask_app.config['STARTING_BALANCE']
            for name in ['Alice', 'Bob', 'Charlie']:
                db.session.add(Account(username=name, balance=starting))

            db.session.add(Election(
                legacy_id='1',
                title='Presidential Election',
                candidates=['Gerry', 'Alex'],
                vote_threshold=10,
            ))
            db.session.add(Election(
                legacy_id='2',
                title='Local Council Election',
                candidates=['Sarah', 'John', 'Mary'],
                vote_threshold=15,
            ))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
