"""
WSGI Entry Point for the Migration Rollout Service

Exposes ``application`` for WSGI servers and runs the Flask development server when
executed directly. Settings are read from the environment (and ``.env`` via
python-dotenv) by ``RolloutSettings.from_env``.

Usage:
    gunicorn app:application
    python app.py
"""

import os

from migration_flags.app import create_app

application = create_app()


if __name__ == '__main__':
    application.run(
        host=os.getenv('FLASK_HOST', '127.0.0.1'),
        port=int(os.getenv('FLASK_PORT', '8000')),
        debug=os.getenv('FLASK_ENV', 'production') == 'development'
    )
