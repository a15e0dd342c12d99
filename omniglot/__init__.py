import logging

from flask import Flask
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect
from google.api_core.exceptions import GoogleAPIError
from config import Config

socketio = SocketIO()
csrf = CSRFProtect()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    csrf.init_app(app)

    # Initialize Firebase
    from omniglot.firebase_init import init_firebase
    init_firebase(app.config)

    # CORS origins
    allowed_origins = []
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', '')
    if cors_origins:
        for origin in cors_origins.split(','):
            origin = origin.strip()
            if origin:
                allowed_origins.append(origin)

    # Socket handlers are collected before init_app binds them to the server
    from omniglot import events  # noqa: F401

    # Events of one connection are handled in arrival order
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins if allowed_origins else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'eventlet'),
        async_handlers=False,
    )

    from omniglot.errors import register_error_handlers
    register_error_handlers(app)

    # Register current_user context processor and before_request
    from omniglot.decorators import load_current_user, get_current_user
    from omniglot.services import notifications
    from omniglot.forms import LANGUAGE_NAMES

    @app.before_request
    def before_request():
        load_current_user()

    @app.context_processor
    def inject_current_user():
        user = get_current_user()
        context = {'current_user': user, 'language_names': LANGUAGE_NAMES,
                   'notifications': [], 'unread': 0}
        if user.is_authenticated:
            try:
                context['notifications'] = notifications.list_for(user.id, limit=30)
                context['unread'] = notifications.unread_count(user.id)
            except GoogleAPIError:
                app.logger.exception('Could not load notifications for %s', user.id)
        return context

    # Register blueprints
    from omniglot.routes import main, auth, account, decks, search, checkout
    app.register_blueprint(main.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(account.bp)
    app.register_blueprint(decks.bp)
    app.register_blueprint(search.bp)
    app.register_blueprint(checkout.bp)

    app.logger.info('Omniglot app created')
    return app
