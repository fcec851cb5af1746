"""Database backups uploaded to a Google Drive folder."""
import hashlib
import logging
import os
import shutil
import subprocess
import tempfile
import urllib.parse as urlparse
from datetime import datetime, timezone

from googleapiclient.http import MediaFileUpload

from google_clients import SyncConfigurationError, build_drive_service
from models import db, BackupLog

logger = logging.getLogger(__name__)


def _sqlite_path(database_uri):
    if not database_uri.startswith("sqlite:///") or ":memory:" in database_uri:
        raise ValueError("in-memory SQLite databases cannot be backed up")
    return database_uri[len("sqlite:///"):]


def dump_database(database_uri):
    """
    Write a copy of the database to the temp directory and return its path.
    SQLite files are copied as <name>.<YYYYmmdd-HHMMSS>.bak; MySQL is dumped with mysqldump.
    """
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")

    if database_uri.startswith("sqlite:"):
        source_path = _sqlite_path(database_uri)
        backup_path = os.path.join(tempfile.gettempdir(), f"{os.path.basename(source_path)}.{stamp}.bak")
        shutil.copy2(source_path, backup_path)
        return backup_path

    if "mysql" in database_uri:
        parsed = urlparse.urlparse(database_uri)
        database = parsed.path[1:]
        backup_path = os.path.join(tempfile.gettempdir(), f"{database}.{stamp}.sql")
        cmd = [
            "mysqldump",
            f"--host={parsed.hostname}",
            f"--port={parsed.port or 3306}",
            f"--user={urlparse.unquote(parsed.username or '')}",
            f"--password={urlparse.unquote(parsed.password or '')}",
            database,
        ]
        with open(backup_path, "w") as f:
            subprocess.run(cmd, stdout=f, check=True)
        return backup_path

    raise ValueError(f"Unsupported database type in URL: {database_uri.split(':', 1)[0]}")


def file_checksum(path):
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def upload_to_drive(drive_service, path, folder_id):
    media = MediaFileUpload(path, mimetype="application/octet-stream", resumable=False)
    body = {"name": os.path.basename(path), "parents": [folder_id]}
    created = drive_service.files().create(body=body, media_body=media, fields="id").execute()
    return created.get("id")


def backup_database(database_uri, folder_id, credentials_info=None, backup_type="manual",
                    initiated_by=None, drive_service=None):
    """
    Create a database backup, upload it to Drive, and log the operation.
    Must run inside an application context. Re-raises on failure after
    marking the BackupLog row failed.
    """
    backup_log = BackupLog(backup_type=backup_type, initiated_by=initiated_by, status="started")
    db.session.add(backup_log)
    db.session.commit()

    backup_path = None
    try:
        if not folder_id:
            raise SyncConfigurationError("FOLDER_ID not set")
        if drive_service is None:
            if not credentials_info:
                raise SyncConfigurationError("GOOGLE_SERVICE_ACCOUNT_JSON not set")
            drive_service = build_drive_service(credentials_info)

        backup_path = dump_database(database_uri)
        file_size = os.path.getsize(backup_path)
        checksum = file_checksum(backup_path)
        file_id = upload_to_drive(drive_service, backup_path, folder_id)

        backup_log.file_path = os.path.basename(backup_path)
        backup_log.drive_file_id = file_id
        backup_log.file_size = file_size
        backup_log.checksum = checksum
        backup_log.status = "completed"
        backup_log.completed_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info(f"Drive backup uploaded id: {file_id} ({file_size} bytes)")
        return backup_log

    except Exception as e:
        db.session.rollback()
        backup_log.status = "failed"
        backup_log.error_message = str(e)
        backup_log.completed_at = datetime.now(timezone.utc)
        db.session.commit()
        raise

    finally:
        if backup_path and os.path.exists(backup_path):
            os.remove(backup_path)
