"""
Application configuration and paths.
"""
import os
from pathlib import Path

# Application identity
APP_NAME = 'SpeechTask'
APP_VERSION = '0.1.0'

# Server configuration
SERVER_HOST = os.environ.get('SPEECHTASK_HOST', '127.0.0.1')
SERVER_PORT = int(os.environ.get('SPEECHTASK_PORT', '5111'))

# Paths
DATA_DIR = Path(os.environ.get('SPEECHTASK_DATA_DIR', Path.home() / '.speechtask'))

# Database configuration
DATABASE_PATH = DATA_DIR / 'speechtask.db'
DATABASE_URL = os.environ.get('SPEECHTASK_DATABASE_URL', f'sqlite+aiosqlite:///{DATABASE_PATH}')

# Object storage (synthesized audio)
STORAGE_DIR = Path(os.environ.get('SPEECHTASK_STORAGE_DIR', DATA_DIR / 'objects'))
STORAGE_BASE_URL = os.environ.get(
    'SPEECHTASK_STORAGE_BASE_URL',
    f'http://{SERVER_HOST}:{SERVER_PORT}/objects',
)

# Speech provider
DEEPGRAM_API_KEY = os.environ.get('DEEPGRAM_API_KEY', '')
DEEPGRAM_BASE_URL = os.environ.get('DEEPGRAM_BASE_URL', 'https://api.deepgram.com/v1')
STT_MODEL = os.environ.get('SPEECHTASK_STT_MODEL', 'nova-3')
STT_DEFAULT_LANGUAGE = os.environ.get('SPEECHTASK_STT_LANGUAGE', 'en-US')
TTS_MODEL = os.environ.get('SPEECHTASK_TTS_MODEL', 'aura-2-thalia-en')

# Which normalizer turns raw STT responses into SimpleTranscript
STT_NORMALIZER = os.environ.get('SPEECHTASK_STT_NORMALIZER', 'deepgram')

# Retry policy for provider calls (linear backoff: attempt * PROVIDER_BACKOFF_S)
PROVIDER_MAX_ATTEMPTS = int(os.environ.get('SPEECHTASK_PROVIDER_MAX_ATTEMPTS', '3'))
PROVIDER_TIMEOUT_S = float(os.environ.get('SPEECHTASK_PROVIDER_TIMEOUT_S', '30.0'))
PROVIDER_BACKOFF_S = float(os.environ.get('SPEECHTASK_PROVIDER_BACKOFF_S', '1.0'))

# Task listing
LIST_DEFAULT_LIMIT = 20
LIST_MAX_LIMIT = 100


def ensure_directories():
    """Create required directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    STORAGE_DIR.mkdir(parents=True, exist_ok=True)
