import os

# Server socket - bind to localhost only (Nginx will proxy)
bind = os.getenv("BIND", "127.0.0.1:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WEB_CONCURRENCY", 2))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5

# Restart workers after this many requests to prevent memory leaks
max_requests = 1000
max_requests_jitter = 50

# Logging
accesslog = os.getenv("ACCESS_LOG", "/opt/orgdesk/logs/access.log")
errorlog = os.getenv("ERROR_LOG", "/opt/orgdesk/logs/error.log")
loglevel = "info"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s"'

# Process naming
proc_name = "orgdesk-api"

# Server mechanics
daemon = False
pidfile = None
umask = 0
user = None
group = None
tmp_upload_dir = None
