"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi create-user --email admin@example.com --role ADMIN
    flask --app wsgi db migrate -m "description"
"""

from accelerator import create_app

app = create_app()
