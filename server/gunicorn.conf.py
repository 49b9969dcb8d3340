"""Gunicorn configuration for production deployment.

Reads settings from environment variables (same as config.py).

Usage:
    gunicorn main:app -c gunicorn.conf.py

Transport bindings, keep-alive timers and loaded actors live in process
memory, so a session's stream and its POSTs must reach the same worker.
Run a single worker unless a sticky load balancer routes by session id.
"""
import os

# Load from environment (same vars used by config.py)
host = os.getenv("HOST", "0.0.0.0")
port = os.getenv("PORT", "3001")
workers_env = os.getenv("WORKERS", "1")
log_level = os.getenv("LOG_LEVEL", "INFO").lower()
debug = os.getenv("DEBUG", "false").lower() == "true"

bind = f"{host}:{port}"

workers = max(int(workers_env), 1)
worker_class = "uvicorn.workers.UvicornWorker"

# Event streams stay open indefinitely; the worker timeout only guards heartbeats
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

# Logging - use LOG_LEVEL from .env
accesslog = "-" if not debug else None
errorlog = "-"
loglevel = log_level

proc_name = "mcp-calendar-server"

preload_app = not debug
