# =============================================================================
# DocVault - Gunicorn Production Configuration
# Usage: gunicorn -c gunicorn.conf.py run:app
# =============================================================================
import os
import multiprocessing

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Workers: 2 * CPU + 1, capped (override with WEB_CONCURRENCY)
workers = int(os.environ.get('WEB_CONCURRENCY', min(multiprocessing.cpu_count() * 2 + 1, 4)))

# Threaded workers: downloads are streamed in chunks and hold a thread each
worker_class = "gthread"
threads = int(os.environ.get('GUNICORN_THREADS', 4))

# Timeouts (uploads up to MAX_FILE_SIZE must fit in one request)
timeout = int(os.environ.get('GUNICORN_TIMEOUT', 120))
graceful_timeout = 30
keepalive = 5

# Logging - the app writes JSON to stdout, gunicorn logs alongside it
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
# Query strings carry share tokens; log the path only
access_log_format = '%(h)s %(t)s "%(m)s %(U)s" %(s)s %(b)s %(L)s'

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 50

# Security: limit request sizes
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

forwarded_allow_ips = os.environ.get('FORWARDED_ALLOW_IPS', '127.0.0.1')
