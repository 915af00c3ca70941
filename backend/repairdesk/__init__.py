from flask import Flask, request
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .config.settings import load_config

    app = Flask(__name__)
    app.config.update(load_config())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

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
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .services.mail import build_mail_gateway
    from .services.storage import build_object_storage, check_content_sniffing
    if app.config.get('ATTACHMENT_SNIFF_CONTENT'):
        check_content_sniffing()
    app.extensions['repairdesk.mail'] = app.config.get('MAIL_GATEWAY') or build_mail_gateway(app.config)
    app.extensions['repairdesk.storage'] = app.config.get('OBJECT_STORAGE') or build_object_storage(app.config)

    from .routes.auth import auth_bp
    from .routes.public import public_bp
    from .routes.tickets import tickets_bp
    from .routes.settings import settings_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(public_bp, url_prefix='/public')
    app.register_blueprint(tickets_bp, url_prefix='/tickets')
    app.register_blueprint(settings_bp, url_prefix='/settings')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def _remove_session(exc):  # type: ignore
        if SessionLocal is not None and exc is not None:
            SessionLocal.rollback()

    # Unified error handler producing standardized JSON shape
    from .errors import RepairDeskError
    from .i18n import translate, resolve_locale

    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, RepairDeskError):
            locale = resolve_locale(request.headers.get('Accept-Language'), app.config.get('DEFAULT_LOCALE'))
            payload = {
                'error': {
                    'status': e.status_code,
                    'title': e.title,
                    'detail': translate(e.message_key, locale, field=e.field, **e.params),
                }
            }
            if e.field:
                payload['error']['field'] = e.field
            return payload, e.status_code
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()
