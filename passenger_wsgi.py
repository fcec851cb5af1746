"""
Passenger WSGI entry point.

This file activates the virtual environment and exposes the Flask WSGI `application`.
Place this file in the web app directory where Passenger expects the app.
"""
import os
import sys

# Adjust this path as needed on the server
VENV_ACTIVATE = os.path.expanduser('~/exun-venv/bin/activate_this.py')

# Ensure the app path is on sys.path (this directory contains app.py)
APP_DIR = os.path.dirname(os.path.abspath(__file__))
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

# Activate virtualenv
if os.path.exists(VENV_ACTIVATE):
    with open(VENV_ACTIVATE, 'r') as f:
        code = compile(f.read(), VENV_ACTIVATE, 'exec')
        exec(code, {'__file__': VENV_ACTIVATE})

# Optionally set environment variables here if not using .env
# os.environ['AUTH_SALT'] = '***'
# os.environ['SPREADSHEET_ID'] = '***'
# os.environ['GOOGLE_SERVICE_ACCOUNT_JSON'] = '/home/exun/service-account.json'

from app import create_app

application = create_app()
