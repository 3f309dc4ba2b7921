"""
WSGI entry point for Gunicorn.

    gunicorn --preload -w 4 wsgi:app

Works from either backend/ or the project root.
"""
import sys
import os

# Add parent directory to path if we're in the backend directory
current_dir = os.path.dirname(os.path.abspath(__file__))
parent_dir = os.path.dirname(current_dir)

if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

try:
    # Running from backend/
    from app import app
except ImportError:
    # Running from the project root
    from backend.app import app

if __name__ == "__main__":
    app.run()
