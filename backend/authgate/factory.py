"""Application factory wiring Flask extensions, token components and blueprints."""

from __future__ import annotations

from flask import Flask

from authgate.core.config import BaseConfig, get_config
from authgate.core.logger import configure_logging, init_app as init_logging


def init_token_components(app: Flask) -> None:
    """Build the token collaborators once and park them on ``app.extensions``.

    Raises
    ------
    ConfigurationError
        If the signing key is missing or shorter than the minimum length.
        Raised here so a misconfigured app never starts serving requests.
    """
    from authgate.core.token_settings import TokenSettings
    from authgate.infra import (
        PyJWTAccessTokenCodec,
        SecureRefreshTokenGenerator,
        WerkzeugPasswordHasher,
    )
    from authgate.services._shared.ports import system_clock
    from authgate.uow import SQLAlchemyUnitOfWork

    settings = TokenSettings.from_config(app.config)
    app.extensions["token_settings"] = settings
    app.extensions["clock"] = system_clock
    app.extensions["token_codec"] = PyJWTAccessTokenCodec(settings, clock=system_clock)
    app.extensions["refresh_token_generator"] = SecureRefreshTokenGenerator()
    app.extensions["password_hasher"] = WerkzeugPasswordHasher()
    app.extensions["uow_factory"] = SQLAlchemyUnitOfWork


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    Parameters
    ----------
    config:
        Import path, class or object passed to :meth:`flask.Config.from_object`.
        Defaults to the class selected by ``APP_ENV``.
    instance_relative_config:
        Whether to also load ``instance/<instance_config_filename>``.
    instance_config_filename:
        Optional instance config file loaded silently.

    Returns
    -------
    flask.Flask
        Fully wired application.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    init_token_components(app)

    from authgate.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from authgate.api import init_app as init_api

    init_api(app)

    from authgate.core import errors

    errors.init_app(app)

    from authgate import cli as app_cli

    app_cli.init_app(app)

    return app
