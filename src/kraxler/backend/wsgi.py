"""WSGI entrypoint for deploying the Kraxler backend behind a process manager."""

from kraxler.backend.app import create_app

# Servers such as Passenger and gunicorn look for ``application``.
application = create_app()
