import multiprocessing
import os

# gunicorn -c gunicorn.conf.py parentmath.main:app
bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count()))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 1000
max_requests_jitter = 50
# Recognition (30s) and generation (60s) run back to back on the photo path
timeout = 100
keepalive = 5
accesslog = "-"
errorlog = "-"
loglevel = "info"
