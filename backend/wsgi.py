# Entry point for `flask` (FLASK_APP=wsgi.py) and WSGI servers.
from gympos import create_app

app = create_app()
