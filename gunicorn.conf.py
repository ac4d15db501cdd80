"""
Production Server Configuration

Run the Stats Dashboard under Gunicorn with Uvicorn workers.
"""

import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes. Every worker builds its own aggregation service with a
# one-process executor, so memory grows with the worker count.
workers = int(os.getenv("WORKERS", 2))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
# Cold aggregations of large batches can take a while
timeout = 300
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "stats-dashboard-api"

# Server mechanics
daemon = False
pidfile = "/tmp/stats-dashboard.pid"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


def post_fork(server, worker):
    """Called after a worker has been forked."""
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def worker_abort(worker):
    """Called when worker receives SIGABRT signal."""
    worker.log.warning("Worker aborted (pid: %s)", worker.pid)
