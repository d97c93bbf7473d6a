import multiprocessing
import os
from dotenv import load_dotenv

# Auto-load .env so PORT and other settings are picked up.
load_dotenv()

wsgi_app = os.getenv("GUNICORN_APP", "watchwise.main:app")
bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() // 2 or 2))
worker_class = os.getenv("GUNICORN_WORKER_CLASS", "uvicorn.workers.UvicornWorker")
# Generation calls wait on the text generator; keep above UPSTREAM_TIMEOUT_SECONDS.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
# Default to stdout/stderr so container logs can be shipped by the host/agent.
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("LOG_LEVEL", "info").lower()
