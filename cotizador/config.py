import os


def _env_flag(name: str, default: str = '1') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class BaseConfig:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///cotizador.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False

    # PDF export
    EXPORT_DIR = os.getenv('EXPORT_DIR')  # defaults to <instance>/exports
    WKHTMLTOPDF_PATH = os.getenv('WKHTMLTOPDF_PATH')
    SHARE_PDF = _env_flag('SHARE_PDF')

    # Document branding
    QUOTE_LEGAL_ID = os.getenv('QUOTE_LEGAL_ID', 'NIT. N.° 900-421730-1')
    QUOTE_LOGO_PATH = os.getenv('QUOTE_LOGO_PATH', 'img/logo.png')
    QUOTE_FOOTER_PATH = os.getenv('QUOTE_FOOTER_PATH', 'img/footer.png')

class DevConfig(BaseConfig):
    DEBUG = True
    ENV = 'development'

class ProdConfig(BaseConfig):
    DEBUG = False
    ENV = 'production'
    SESSION_COOKIE_SECURE = True

class TestConfig(BaseConfig):
    TESTING = True
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SHARE_PDF = True
