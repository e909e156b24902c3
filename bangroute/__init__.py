from flask import Flask

from bangroute.api import api_bp
from bangroute.cli import bangs_cli, register_commands
from bangroute.config import Config
from bangroute.extensions import db
from bangroute.services.storage import JsonFileStorage, MemoryStorage
from bangroute.services.store import LocalBangStore
from bangroute.web import web_bp


def create_bang_store(app: Flask) -> LocalBangStore:
    path = app.config.get("LOCAL_STORE_PATH")
    storage = JsonFileStorage(path) if path else MemoryStorage()
    return LocalBangStore(storage)


def create_app(config_object=Config):
    app = Flask(__name__, template_folder="../templates")
    app.config.from_object(config_object)

    db.init_app(app)
    app.extensions["bang_store"] = create_bang_store(app)

    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    register_commands(app)
    app.cli.add_command(bangs_cli)

    @app.context_processor
    def inject_globals():
        return {"app_name": "BangRoute"}

    with app.app_context():
        db.create_all()

    return app
