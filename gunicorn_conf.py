import multiprocessing
import os

# Gunicorn config
bind = os.getenv("BIND", "0.0.0.0:8000")  # Match this port in your ALB target group
workers = int(os.getenv("WEB_CONCURRENCY", min(4, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"
loglevel = os.getenv("LOG_LEVEL", "info")
# Deferred moderation tasks are drained on shutdown
graceful_timeout = 15
accesslog = "/var/log/gunicorn/access.log"
errorlog = "/var/log/gunicorn/error.log"
