# backend/gunicorn_conf.py

# Gunicorn config file. Run from backend/:
#   gunicorn -c gunicorn_conf.py guided_flows.main:app
#
# Active sessions live in process memory (Redis only restores them after a
# restart), so a single worker owns every session.

bind = "0.0.0.0:8000"
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"
proxy_protocol = True
proxy_allow_ips = '*'

# --- Logging ---
accesslog = "-"
errorlog = "-"
loglevel = "info"
