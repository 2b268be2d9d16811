import sys
import atexit
import logging
from flask import Flask
from dotenv import load_dotenv


def create_app(store=None, cache=None, session_cache=None, background=None):
    load_dotenv()
    app = Flask(__name__)

    # =========================================================
    # Logging
    # =========================================================
    gunicorn_error = logging.getLogger("gunicorn.error")
    app.logger.handlers = list(gunicorn_error.handlers)
    app.logger.setLevel(logging.INFO)

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    app.logger.addHandler(sh)

    # =========================================================
    # Session wiring: cache + remote store -> state -> sync
    # =========================================================
    from . import config
    from .utils.logger import set_level
    from .clients.local import LocalCache, SessionCache
    from .clients.remote import RemoteStore
    from .services.identity import AuthSession
    from .services.state import ShoppingState
    from .services.sync import SyncController

    set_level(config.LOG_LEVEL)

    store = store if store is not None else RemoteStore()
    cache = cache if cache is not None else LocalCache(config.LOCAL_CACHE_PATH)
    state = ShoppingState()
    controller = SyncController(
        state, cache, store,
        background=config.SYNC_BACKGROUND_WRITES if background is None else background,
    )
    atexit.register(controller.close)
    auth = AuthSession(store, session_cache or SessionCache())
    auth.on_change(controller.set_identity)
    auth.restore()

    app.extensions["shoplist"] = {
        "state": state,
        "controller": controller,
        "auth": auth,
        "cache": cache,
        "store": store,
    }

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.session import bp as session_bp
    from .routes.shopping import bp as shopping_bp

    app.register_blueprint(session_bp, url_prefix="/session")
    app.register_blueprint(shopping_bp)

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        app.logger.info("Health check endpoint called")
        return {"ok": True, "status": controller.status}, 200

    return app
