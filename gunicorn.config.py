import os

from config import SERVICE_PORTS

# SERVICE picks one of the service apps; unset serves every blueprint on PORT.
service = os.getenv("SERVICE")
env_name, default_port = SERVICE_PORTS[service or "auth"]

wsgi_app = "app:app"
worker_class = "gevent"
workers = int(os.getenv("WEB_CONCURRENCY", 4))
threads = 2
worker_connections = 1000
timeout = 120
bind = "0.0.0.0:{}".format(os.getenv(env_name, default_port))

loglevel = "info"
accesslog = "-"
errorlog = "-"
