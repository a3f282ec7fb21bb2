"""
External integration utilities: vocabularies, input validation,
sync log status, retry backoff and token expiry
"""
import re
from datetime import timedelta

from django.utils import timezone
from django.utils.crypto import get_random_string

from gama_erp.core.utils import to_datetime
from gama_erp.core.workflows import register_workflow

INTEGRATION_TYPES = ('accounting', 'tracking', 'email', 'storage', 'messaging', 'custom')
PROVIDERS = (
    'accurate', 'jurnal', 'xero', 'google_sheets', 'whatsapp',
    'telegram', 'slack', 'google_drive', 'dropbox',
)
SYNC_DIRECTIONS = ('push', 'pull', 'bidirectional')
SYNC_FREQUENCIES = ('realtime', 'hourly', 'daily', 'manual')
SYNC_STATUSES = ('running', 'completed', 'failed', 'partial')
TRANSFORMS = ('date_format', 'currency_format', 'uppercase', 'lowercase', 'custom')
FILTER_OPERATORS = ('eq', 'neq', 'gt', 'lt', 'gte', 'lte', 'in', 'contains')

SYNC_STATUS_LABELS = {
    'running': 'Running',
    'completed': 'Completed',
    'failed': 'Failed',
    'partial': 'Partial Success',
}

# completed, failed and partial are final
SYNC_LOG_WORKFLOW = register_workflow('sync_log', {
    'running': ['completed', 'failed', 'partial'],
    'completed': [],
    'failed': [],
    'partial': [],
}, labels=SYNC_STATUS_LABELS)

INTEGRATION_TYPE_LABELS = {
    'accounting': 'Accounting',
    'tracking': 'GPS Tracking',
    'email': 'Email',
    'storage': 'Cloud Storage',
    'messaging': 'Messaging',
    'custom': 'Custom',
}

PROVIDER_LABELS = {
    'accurate': 'Accurate Online',
    'jurnal': 'Jurnal.id',
    'xero': 'Xero',
    'google_sheets': 'Google Sheets',
    'whatsapp': 'WhatsApp',
    'telegram': 'Telegram',
    'slack': 'Slack',
    'google_drive': 'Google Drive',
    'dropbox': 'Dropbox',
}

CONNECTION_CODE_RE = re.compile(r'[A-Za-z0-9_-]+')
CONNECTION_CODE_MAX_LENGTH = 50
CONNECTION_NAME_MAX_LENGTH = 100

MAX_BACKOFF_EXPONENT = 10
RETRY_DELAY_MAX_EXPONENT = 30
TOKEN_EXPIRY_BUFFER = timedelta(minutes=5)


def _blank(value):
    return not value or not str(value).strip()


# Connections

def validate_connection_code(code):
    """Letters, digits, underscores and hyphens, at most 50 characters"""
    if _blank(code) or len(code) > CONNECTION_CODE_MAX_LENGTH:
        return False
    return bool(CONNECTION_CODE_RE.fullmatch(code))


def validate_connection_name(name):
    if _blank(name):
        return False
    return len(name) <= CONNECTION_NAME_MAX_LENGTH


def validate_connection_input(data):
    """
    Validate a new integration connection.

    Returns:
        dict: {'valid': bool, 'errors': [str]}
    """
    errors = []

    code = data.get('connection_code')
    if not code:
        errors.append('connection_code is required')
    elif not validate_connection_code(code):
        errors.append('connection_code must be alphanumeric with underscores/hyphens, max 50 chars')

    name = data.get('connection_name')
    if not name:
        errors.append('connection_name is required')
    elif not validate_connection_name(name):
        errors.append('connection_name must be non-empty, max 100 chars')

    integration_type = data.get('integration_type')
    if not integration_type:
        errors.append('integration_type is required')
    elif integration_type not in INTEGRATION_TYPES:
        errors.append(f"integration_type must be one of: {', '.join(INTEGRATION_TYPES)}")

    provider = data.get('provider')
    if not provider:
        errors.append('provider is required')
    elif provider not in PROVIDERS:
        errors.append(f"provider must be one of: {', '.join(PROVIDERS)}")

    return {'valid': not errors, 'errors': errors}


def generate_connection_code(provider):
    """PROVIDER_<base36 timestamp>_<random>"""
    timestamp = int(timezone.now().timestamp() * 1000)
    return f'{provider.upper()}_{_to_base36(timestamp)}_{get_random_string(4).lower()}'


def _to_base36(number):
    digits = '0123456789abcdefghijklmnopqrstuvwxyz'
    result = ''
    while number:
        number, remainder = divmod(number, 36)
        result = digits[remainder] + result
    return result or '0'


# Sync mappings

def validate_field_mapping(mapping):
    if _blank(mapping.get('local_field')) or _blank(mapping.get('remote_field')):
        return False
    transform = mapping.get('transform')
    if transform and transform not in TRANSFORMS:
        return False
    return True


def validate_filter_condition(condition):
    """The value may be anything, including None"""
    if _blank(condition.get('field')):
        return False
    return condition.get('operator') in FILTER_OPERATORS


def validate_sync_mapping_input(data):
    """
    Validate a new sync mapping.

    Returns:
        dict: {'valid': bool, 'errors': [str]}
    """
    errors = []

    if not data.get('connection_id'):
        errors.append('connection_id is required')
    if _blank(data.get('local_table')):
        errors.append('local_table is required')
    if _blank(data.get('remote_entity')):
        errors.append('remote_entity is required')

    field_mappings = data.get('field_mappings')
    if not isinstance(field_mappings, (list, tuple)):
        errors.append('field_mappings is required and must be an array')
    elif not field_mappings:
        errors.append('field_mappings must have at least one mapping')
    else:
        for index, mapping in enumerate(field_mappings):
            if not validate_field_mapping(mapping):
                errors.append(f'field_mappings[{index}] is invalid')

    direction = data.get('sync_direction')
    if direction and direction not in SYNC_DIRECTIONS:
        errors.append(f"sync_direction must be one of: {', '.join(SYNC_DIRECTIONS)}")

    frequency = data.get('sync_frequency')
    if frequency and frequency not in SYNC_FREQUENCIES:
        errors.append(f"sync_frequency must be one of: {', '.join(SYNC_FREQUENCIES)}")

    conditions = data.get('filter_conditions')
    if isinstance(conditions, (list, tuple)):
        for index, condition in enumerate(conditions):
            if not validate_filter_condition(condition):
                errors.append(f'filter_conditions[{index}] is invalid')

    return {'valid': not errors, 'errors': errors}


# Sync logs

def is_valid_sync_status_transition(current, target):
    """A sync run only leaves 'running', and only once"""
    return SYNC_LOG_WORKFLOW.can_transition(current, target)


def is_sync_terminal(status):
    return SYNC_LOG_WORKFLOW.is_terminal(status)


# Retries and tokens

def calculate_retry_delay(retry_count, base_delay_ms=1000, max_delay_ms=30000):
    """Exponential backoff in milliseconds, capped at max_delay_ms"""
    count = min(max(0, retry_count), RETRY_DELAY_MAX_EXPONENT)
    return min(base_delay_ms * 2 ** count, max_delay_ms)


def calculate_backoff_minutes(retry_count):
    """
    Minutes to wait before the next sync retry.

    min(2^retry_count, 2^10); negative counts are treated as 0.
    """
    count = min(max(0, retry_count), MAX_BACKOFF_EXPONENT)
    return 2 ** count


def calculate_next_retry_at(retry_count, now=None):
    now = now or timezone.now()
    return now + timedelta(minutes=calculate_backoff_minutes(retry_count))


def is_token_expired(expires_at, now=None):
    """
    True when an OAuth token is expired or expires within 5 minutes.

    A missing expiry counts as expired.
    """
    if not expires_at:
        return True
    now = now or timezone.now()
    return to_datetime(expires_at) <= now + TOKEN_EXPIRY_BUFFER


# Display

def format_sync_status(status):
    return SYNC_STATUS_LABELS.get(status, status)


def format_integration_type(integration_type):
    return INTEGRATION_TYPE_LABELS.get(integration_type, integration_type)


def format_provider(provider):
    return PROVIDER_LABELS.get(provider, provider)
