"""
Default configuration values for keen-client.

Centralized defaults that can be overridden by environment variables or config files.
"""

from typing import Dict, Any

# Ingestion API
SERVER_ADDRESS = "https://api.keen.io"
API_VERSION = "3.0"

# Server errors that mean the event can never be accepted
INVALID_COLLECTION_NAME_ERROR = "InvalidCollectionNameError"
INVALID_PROPERTY_NAME_ERROR = "InvalidPropertyNameError"
INVALID_PROPERTY_VALUE_ERROR = "InvalidPropertyValueError"

NON_RETRYABLE_ERRORS = frozenset({
    INVALID_COLLECTION_NAME_ERROR,
    INVALID_PROPERTY_NAME_ERROR,
    INVALID_PROPERTY_VALUE_ERROR,
})

# Reserved root-level event key carrying client metadata
KEEN_NAMESPACE = "keen"
TIMESTAMP_PARAM = "timestamp"

# Naming limits
MAX_COLLECTION_NAME_LENGTH = 256
MAX_PROPERTY_NAME_LENGTH = 256
MAX_STRING_VALUE_LENGTH = 10000  # values must be strictly shorter

# Record file naming: <millis>.<counter>, fixed width so name order == enqueue order
RECORD_MILLIS_WIDTH = 15
RECORD_COUNTER_WIDTH = 6
QUARANTINE_DIRNAME = "$quarantine"

# Collection directory naming: percent-encoded name, or "#<sha256>" plus a name
# file when the encoded form does not fit in one path component
MAX_DIRNAME_BYTES = 255
HASHED_DIRNAME_PREFIX = "#"
COLLECTION_NAME_FILE = ".collection"

# Global default settings
DEFAULT_SETTINGS = {
    "server": {
        "url": SERVER_ADDRESS,
        "api_version": API_VERSION,
        "timeout": 30.0
    },

    "storage": {
        "max_events_per_collection": 1000,
        "events_to_forget": 2,
        "cache_dirname": "keen"
    },

    "client": {
        "background_uploads": True
    }
}

# Smaller queue and synchronous uploads for test runs
TEST_SETTINGS = {
    "storage": {
        "max_events_per_collection": 5,
        "events_to_forget": 2
    },
    "client": {
        "background_uploads": False
    }
}

# Environment variable mappings (dot paths into the client config dict)
ENV_VAR_MAPPING = {
    'KEEN_PROJECT_ID': 'project_id',
    'KEEN_WRITE_KEY': 'write_key',
    'KEEN_READ_KEY': 'read_key',
    'KEEN_CACHE_DIR': 'cache_dir',
    'KEEN_SERVER_URL': 'server.url',
    'KEEN_API_VERSION': 'server.api_version',
    'KEEN_REQUEST_TIMEOUT': 'server.timeout',
    'KEEN_MAX_EVENTS_PER_COLLECTION': 'storage.max_events_per_collection',
    'KEEN_EVENTS_TO_FORGET': 'storage.events_to_forget',
    'KEEN_BACKGROUND_UPLOADS': 'background_uploads'
}

# Keys whose env values must stay strings even when they look numeric
STRING_CONFIG_PATHS = frozenset({
    'project_id', 'write_key', 'read_key', 'cache_dir', 'server.url', 'server.api_version'
})


def get_default_client_config(testing: bool = False) -> Dict[str, Any]:
    """Get default client configuration template (without credentials)"""
    storage = dict(DEFAULT_SETTINGS['storage'])
    client = dict(DEFAULT_SETTINGS['client'])
    if testing:
        storage.update(TEST_SETTINGS['storage'])
        client.update(TEST_SETTINGS['client'])

    return {
        'server': dict(DEFAULT_SETTINGS['server']),
        'storage': storage,
        'background_uploads': client['background_uploads']
    }
