# fundcalc/config.py

import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))

# Picks up a .env file in the repository root, if there is one.
load_dotenv(os.path.join(basedir, '..', '.env'))


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Configuration for the fund calculator app, read from the environment.
    """
    # --- Database Settings ---
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///data/app.db'

    # --- Scenario files ---
    # Folder scanned for exported scenario files (*.json).
    DATA_DIR = os.environ.get('DATA_DIR') or 'data'
    INGEST_ON_STARTUP = _flag('INGEST_ON_STARTUP', True)

    # --- Logging ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
