"""Gunicorn settings derived from the service environment."""

from config import Settings

_settings = Settings()

bind = f"0.0.0.0:{_settings.port}"
workers = _settings.gunicorn_workers
threads = _settings.gunicorn_threads
timeout = _settings.gunicorn_timeout
graceful_timeout = _settings.gunicorn_graceful_timeout
keepalive = _settings.gunicorn_keepalive
worker_class = "uvicorn.workers.UvicornWorker"
loglevel = _settings.log_level.lower()
accesslog = "-"
errorlog = "-"
