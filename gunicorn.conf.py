"""
Gunicorn configuration for the stealth discovery API.

Usage:
    gunicorn stealth.main:app -c gunicorn.conf.py
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")

# CPU cores * 2 + 1
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))

# Uvicorn's ASGI worker for FastAPI
worker_class = "uvicorn.workers.UvicornWorker"

# Synchronous POST /internal/ingest waits on every adapter's timeout
timeout = 300

keepalive = 5

accesslog = "-"  # stdout
errorlog = "-"   # stderr
loglevel = "info"
