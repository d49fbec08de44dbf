"""
Initialize database tables.
Run this on first deploy instead of flask db upgrade.

Set RESET_DB=1 environment variable to drop and recreate all tables.
"""
import os

from radnotebook import create_app, db


def init_db():
    """Create all database tables."""
    app = create_app(os.getenv('FLASK_ENV', 'production'))

    with app.app_context():
        if os.getenv('RESET_DB', '').strip() in ('1', 'true', 'yes'):
            app.logger.warning('RESET_DB is set - dropping all tables...')
            db.drop_all()
            app.logger.info('Tables dropped.')

        app.logger.info('Creating database tables...')
        db.create_all()
        app.logger.info('Database tables created: %s', ', '.join(sorted(db.metadata.tables)))


if __name__ == '__main__':
    init_db()
