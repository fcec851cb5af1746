import os


def _env_int(name, default):
    """Read a positive integer setting, falling back to the default."""
    raw = os.environ.get(name, "")
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change-this-in-production")
    # Database configuration
    # Use DATABASE_URL if provided, otherwise MySQL from individual vars, otherwise SQLite
    if os.getenv('DATABASE_URL'):
        raw_url = os.environ.get("DATABASE_URL")
        # Hosted Postgres may hand out postgres://; SQLAlchemy expects postgresql+psycopg2://
        if raw_url.startswith("postgres://"):
            raw_url = raw_url.replace("postgres://", "postgresql+psycopg2://", 1)
        elif raw_url.startswith("postgresql://"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg2://", 1)
        SQLALCHEMY_DATABASE_URI = raw_url
    elif os.environ.get("DB_HOST"):
        DB_HOST = os.environ.get("DB_HOST")
        DB_PORT = os.environ.get("DB_PORT", "3306")
        DB_NAME = os.environ.get("DB_NAME", "exun_portal")
        DB_USER = os.environ.get("DB_USER", "exun")
        # Do not hard-code passwords; require via environment
        DB_PASSWORD = os.environ.get("DB_PASSWORD", "")

        # URL-encode user and password to safely handle special characters (e.g., ! @ : / ? #)
        from urllib.parse import quote_plus
        enc_user = quote_plus(DB_USER)
        enc_password = quote_plus(DB_PASSWORD)

        SQLALCHEMY_DATABASE_URI = (
            f"mysql+pymysql://{enc_user}:{enc_password}@{DB_HOST}:{DB_PORT}/{DB_NAME}?charset=utf8mb4"
        )
    else:
        basedir = os.path.abspath(os.path.dirname(__file__))
        DB_PATH = os.environ.get("DB_PATH", os.path.join(basedir, "instance", "exun_portal.sqlite3"))
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{os.path.abspath(DB_PATH)}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # OTP authentication
    # AUTH_SALT keys both the OTP and the auth cookie; the app refuses to start without it.
    AUTH_SALT = os.environ.get("AUTH_SALT", "")
    COOKIE_SECURE = os.environ.get("COOKIE_SECURE", "True").lower() == "true"
    AUTH_COOKIE_MAX_AGE = 24 * 60 * 60

    # Comma-separated admin list; ADMIN_EMAIL is the older single-address name
    ADMIN_EMAILS = os.environ.get("ADMIN_EMAILS") or os.environ.get("ADMIN_EMAIL") or "exun@dpsrkp.net"

    # Email configuration
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
    MAIL_USE_TLS = os.environ.get("MAIL_USE_TLS", "True").lower() == "true"
    MAIL_USE_SSL = os.environ.get("MAIL_USE_SSL", "False").lower() == "true"
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "noreply@exun.co")
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Exun Clan")

    # Request validation: the JSON API forms disable CSRF per form
    WTF_CSRF_ENABLED = os.environ.get("WTF_CSRF_ENABLED", "True").lower() == "true"

    # Event catalog shipped with the site
    EVENTS_JSON_PATH = os.environ.get(
        "EVENTS_JSON_PATH",
        os.path.join(os.path.abspath(os.path.dirname(__file__)), "data", "events.json"),
    )

    # ==========================
    # Spreadsheet mirror
    # ==========================
    SPREADSHEET_ID = os.environ.get("SPREADSHEET_ID", "")
    # Either a path to the service-account key file or the key JSON itself
    GOOGLE_SERVICE_ACCOUNT_JSON = os.environ.get("GOOGLE_SERVICE_ACCOUNT_JSON", "")
    # Run the sync loop inside the web process; worker.py runs it standalone
    SHEETS_SYNC_ENABLED = os.environ.get("SHEETS_SYNC_ENABLED", "False").lower() == "true"
    SHEETS_SYNC_INTERVAL = _env_int("SHEETS_SYNC_INTERVAL", 1)  # minutes
    SHEETS_SYNC_TABLES = os.environ.get("SHEETS_SYNC_TABLES", "")
    # A sheet with fewer keys than this is treated as damaged and never drives DB deletes
    SHEETS_DELETE_MIN_KEYS = _env_int("SHEETS_DELETE_MIN_KEYS", 1)
    # strict: the sheet is authoritative; tracked: only delete rows seen on the sheet in an earlier cycle
    SHEETS_DELETE_POLICY = os.environ.get("SHEETS_DELETE_POLICY", "strict").lower()

    # ==========================
    # Off-site backup
    # ==========================
    DRIVE_BACKUP_INTERVAL = _env_int("DRIVE_BACKUP_INTERVAL", 360)  # minutes
    FOLDER_ID = os.environ.get("FOLDER_ID", "")
