import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5002")
# Um worker: o bloqueio de turno por projeto vale dentro do processo
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
threads = int(os.getenv("GUNICORN_THREADS", "8"))
# síntese pode levar até 3 tentativas de 90s
timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
pythonpath = "src/main/python"
wsgi_app = "applicationApi:app"
accesslog = "-"
errorlog = "-"
