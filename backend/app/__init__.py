from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['AUTO_CLOSE_CUTOFF_DAYS'] = int(os.getenv('AUTO_CLOSE_CUTOFF_DAYS', '3'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    # callable(event, request_id, recipients); None means log only
    app.config['NOTIFICATION_SINK'] = None

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True, pool_pre_ping=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.requests import req_bp
    from .routes.buildings import bld_bp
    app.register_blueprint(req_bp, url_prefix='/requests')
    app.register_blueprint(bld_bp, url_prefix='/buildings')

    from .services.notifications import connect_default_subscribers
    connect_default_subscribers()

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                    'kind': getattr(e, 'kind', None),
                }
            }
            return payload, e.code
        # Unhandled exception: the open transaction is unusable after a driver error
        if SessionLocal is not None:
            SessionLocal.rollback()
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error',
                'kind': None,
            }
        }, 500

    return app


def get_db():
    return SessionLocal()
