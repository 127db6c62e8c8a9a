# WSGI entry. Needs `alpharush` importable: `pip install -e .` or cwd=backend/.
from alpharush.server import create_app

app, socketio = create_app()
