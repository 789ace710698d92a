#!/usr/bin/env python3
"""
WSGI entry point for production deployment with gunicorn
Usage: gunicorn -w 1 --threads 100 --bind 127.0.0.1:5000 wsgi:app
"""

from lap_times_server import app, setup_logging, socketio

setup_logging()

if __name__ == '__main__':
    socketio.run(app)
