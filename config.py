import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here-make-it-long'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'vendor_ledger.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger policy
    DEFAULT_CASH_LIMIT = float(os.environ.get('DEFAULT_CASH_LIMIT', 10000))
    LEDGER_CONFLICT_RETRIES = int(os.environ.get('LEDGER_CONFLICT_RETRIES', 3))
    DEFAULT_PAGE_SIZE = 20

    # Called as notifier(vendor_id, title, message); delivery lives outside this service
    LEDGER_NOTIFIER = None

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_LEVEL = 'DEBUG'
