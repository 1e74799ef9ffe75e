# backend/wsgi.py
from shopmaster import create_app

app = create_app()
