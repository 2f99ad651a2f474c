# backend/converter/__init__.py
from flask import Flask

from .config import ConverterConfig


def create_converter_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(ConverterConfig)
    if config_overrides:
        app.config.update(config_overrides)

    from .routes import convert_bp
    app.register_blueprint(convert_bp)

    return app
