import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv('DATABASE_URL')
USE_DB = bool(DATABASE_URL)

RECORDS_STORAGE_DIR = Path(os.getenv('RECORDS_STORAGE_DIR', Path.cwd() / 'data'))
RECORDS_STORAGE_KEY = os.getenv('RECORDS_STORAGE_KEY', 'academy_records')

ADMIN_USERNAME = os.getenv('ADMIN_USERNAME', 'admin')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin123')

GIST_API_BASE = os.getenv('GIST_API_BASE_URL', 'https://api.github.com')
GIST_FILENAME = os.getenv('GIST_FILENAME', 'academy_records.json')
GIST_DESCRIPTION = os.getenv('GIST_DESCRIPTION', 'Academy records - school management backup')

SYNC_HTTP_TIMEOUT = float(os.getenv('SYNC_HTTP_TIMEOUT', '15'))
SYNC_STATUS_DISPLAY_SECONDS = float(os.getenv('SYNC_STATUS_DISPLAY_SECONDS', '3'))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv('CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000').split(',')
    if origin.strip()
]
