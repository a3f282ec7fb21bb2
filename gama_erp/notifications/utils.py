"""
Notification template utilities: placeholder substitution, per-channel
rendering and template validation
"""
import re

from gama_erp.core.exceptions import InvalidChoiceError

EVENT_TYPES = (
    'job_order.assigned',
    'job_order.status_changed',
    'invoice.sent',
    'invoice.overdue',
    'incident.created',
    'document.expiring',
    'maintenance.due',
    'approval.required',
)

CHANNELS = ('email', 'whatsapp', 'in_app', 'push')

# {{key}} or {{key|inline default}}
PLACEHOLDER_RE = re.compile(r'\{\{\s*([A-Za-z_][A-Za-z0-9_.]*)\s*(?:\|([^}]*))?\}\}')
TEMPLATE_CODE_RE = re.compile(r'[A-Z][A-Z0-9_]{2,29}')

CONTENT_FIELDS = (
    'email_subject',
    'email_body_html',
    'email_body_text',
    'whatsapp_body',
    'in_app_title',
    'in_app_body',
    'in_app_action_url',
    'push_title',
    'push_body',
)


def extract_placeholder_keys(text):
    """Unique placeholder keys in order of first appearance"""
    keys = []
    for match in PLACEHOLDER_RE.finditer(text or ''):
        if match.group(1) not in keys:
            keys.append(match.group(1))
    return keys


def _definition_defaults(definitions):
    return {
        definition['key']: definition.get('default_value')
        for definition in definitions or []
        if definition.get('default_value') is not None
    }


def replace_placeholders(text, data, definitions=None):
    """
    Substitute {{key}} placeholders in text.

    A value in data wins over the definition default, which wins over an
    inline {{key|default}}. Placeholders with none of these are left as is.
    """
    if not text:
        return text or ''
    defaults = _definition_defaults(definitions)

    def substitute(match):
        key, inline_default = match.group(1), match.group(2)
        if data.get(key) is not None:
            return str(data[key])
        if key in defaults:
            return str(defaults[key])
        if inline_default is not None:
            return inline_default
        return match.group(0)

    return PLACEHOLDER_RE.sub(substitute, text)


def validate_placeholder_data(template, data):
    """
    Check that every placeholder used by a template can be filled.

    Returns:
        dict: {'valid': bool, 'missing_keys': [str]}
    """
    defaults = _definition_defaults(template.get('placeholders'))
    missing = []
    for field in CONTENT_FIELDS:
        for match in PLACEHOLDER_RE.finditer(template.get(field) or ''):
            key = match.group(1)
            if data.get(key) is not None or key in defaults or match.group(2) is not None:
                continue
            if key not in missing:
                missing.append(key)
    return {'valid': not missing, 'missing_keys': missing}


def get_template_supported_channels(template):
    """Channels the template has body content for"""
    channels = []
    if template.get('email_body_html') or template.get('email_body_text'):
        channels.append('email')
    if template.get('whatsapp_body'):
        channels.append('whatsapp')
    if template.get('in_app_body'):
        channels.append('in_app')
    if template.get('push_body'):
        channels.append('push')
    return channels


def render_template(template, data, channel):
    """
    Render a template for one channel.

    Args:
        template: Notification template (dict)
        data: Placeholder values
        channel: One of CHANNELS

    Returns:
        dict: channel, subject, body, action_url; None when the template
        has no content for the channel
    """
    if channel not in CHANNELS:
        raise InvalidChoiceError('channel', channel, CHANNELS)
    if channel not in get_template_supported_channels(template):
        return None

    definitions = template.get('placeholders')

    def render(field):
        value = template.get(field)
        if value is None:
            return None
        return replace_placeholders(value, data, definitions)

    if channel == 'email':
        subject, body, action_url = 'email_subject', 'email_body_html', None
        if not template.get('email_body_html'):
            body = 'email_body_text'
    elif channel == 'whatsapp':
        subject, body, action_url = None, 'whatsapp_body', None
    elif channel == 'in_app':
        subject, body, action_url = 'in_app_title', 'in_app_body', 'in_app_action_url'
    else:
        subject, body, action_url = 'push_title', 'push_body', None

    return {
        'channel': channel,
        'subject': render(subject) if subject else None,
        'body': render(body),
        'action_url': render(action_url) if action_url else None,
    }


def validate_template(data):
    """
    Validate a notification template before saving.

    Returns:
        dict: {'valid': bool, 'error': str or None, 'warnings': [str]}
    """
    code = (data.get('template_code') or '').strip()
    if not code:
        return {'valid': False, 'error': 'Template code is required', 'warnings': []}
    if not TEMPLATE_CODE_RE.fullmatch(code):
        return {
            'valid': False,
            'error': 'Template code must be 3-30 characters: uppercase letters, digits and underscores, '
                     'starting with a letter',
            'warnings': [],
        }
    if not (data.get('template_name') or '').strip():
        return {'valid': False, 'error': 'Template name is required', 'warnings': []}

    event_type = data.get('event_type')
    if event_type not in EVENT_TYPES:
        return {'valid': False, 'error': f'Invalid event type: {event_type}', 'warnings': []}

    warnings = []
    if not get_template_supported_channels(data):
        warnings.append('Template has no content for any channel')

    defined = {definition.get('key') for definition in data.get('placeholders') or []}
    used = []
    for field in CONTENT_FIELDS:
        for key in extract_placeholder_keys(data.get(field)):
            if key not in defined and key not in used:
                used.append(key)
    if used:
        warnings.append(f"Undefined placeholders: {', '.join(used)}")

    return {'valid': True, 'error': None, 'warnings': warnings}


def format_event_type(event_type):
    """'job_order.status_changed' -> 'Job Order Status Changed'"""
    return event_type.replace('.', ' ').replace('_', ' ').title()
