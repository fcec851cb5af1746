"""Service-account credentials and discovery clients for Sheets and Drive."""
import json
import logging
import os

from google.oauth2 import service_account
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)
DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive.file",)


class SyncConfigurationError(RuntimeError):
    """Raised when the Google integration is missing credentials or a target id."""


def load_service_account_info(value):
    """
    Accept GOOGLE_SERVICE_ACCOUNT_JSON as either a path to the key file or the key JSON itself.
    """
    if not value or not value.strip():
        raise SyncConfigurationError("GOOGLE_SERVICE_ACCOUNT_JSON not set")
    value = value.strip()
    if os.path.isfile(value):
        try:
            with open(value, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            raise SyncConfigurationError(f"failed to read service account file: {exc}") from exc
    try:
        info = json.loads(value)
    except ValueError as exc:
        raise SyncConfigurationError(
            "GOOGLE_SERVICE_ACCOUNT_JSON is neither a readable file nor valid JSON"
        ) from exc
    if not isinstance(info, dict):
        raise SyncConfigurationError("service account JSON must be an object")
    return info


def _credentials(info, scopes):
    return service_account.Credentials.from_service_account_info(info, scopes=list(scopes))


def build_sheets_service(info):
    return build("sheets", "v4", credentials=_credentials(info, SHEETS_SCOPES), cache_discovery=False)


def build_drive_service(info):
    return build("drive", "v3", credentials=_credentials(info, DRIVE_SCOPES), cache_discovery=False)
