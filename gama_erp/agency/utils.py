"""
Bill of Lading (B/L) and Berita Acara status rules
"""
from django.utils import timezone

from gama_erp.core.workflows import register_workflow

BL_STATUS_LABELS = {
    'draft': 'Draft',
    'submitted': 'Submitted',
    'issued': 'Issued',
    'released': 'Released',
    'surrendered': 'Surrendered',
    'amended': 'Amended',
}

# An issued B/L is only changed through an amendment, never terminal
BL_WORKFLOW = register_workflow('bill_of_lading', {
    'draft': ['submitted', 'amended'],
    'submitted': ['issued', 'draft', 'amended'],
    'issued': ['released', 'surrendered', 'amended'],
    'released': ['amended'],
    'surrendered': ['amended'],
    'amended': ['submitted', 'issued'],
}, labels=BL_STATUS_LABELS)

PROTECTED_STATUSES = ('issued', 'released', 'surrendered')

BA_STATUS_LABELS = {
    'draft': 'Draft',
    'pending_signature': 'Pending Signature',
    'signed': 'Signed',
    'archived': 'Archived',
}

# Berita Acara (cargo handover report)
BA_WORKFLOW = register_workflow('berita_acara', {
    'draft': ['pending_signature'],
    'pending_signature': ['signed', 'archived'],
    'signed': [],
    'archived': [],
}, labels=BA_STATUS_LABELS)


def is_valid_bl_status_transition(current, target):
    return BL_WORKFLOW.can_transition(current, target)


def prepare_bl_status_update(current, target, now=None):
    """
    Build the field updates for a B/L status change.

    issued_at is stamped when the B/L is issued, released_at when it is
    released or surrendered.

    Returns:
        dict: {'success': True, 'data': {...}} or {'success': False, 'error': str}
    """
    check = BL_WORKFLOW.check_transition(current, target)
    if not check['valid']:
        return {'success': False, 'error': check['error']}

    now = now or timezone.now()
    data = {
        'status': target,
        'updated_at': now,
    }
    if target == 'issued':
        data['issued_at'] = now
    elif target in ('released', 'surrendered'):
        data['released_at'] = now
    return {'success': True, 'data': data}


def submit(current, now=None):
    """Submit a draft B/L to the carrier"""
    return prepare_bl_status_update(current, 'submitted', now)


def issue(current, now=None):
    return prepare_bl_status_update(current, 'issued', now)


def release(current, now=None):
    """Telex release"""
    return prepare_bl_status_update(current, 'released', now)


def surrender(current, now=None):
    return prepare_bl_status_update(current, 'surrendered', now)


def can_modify_bl(status):
    """Issued, released and surrendered B/Ls change only through amendment"""
    return status not in PROTECTED_STATUSES


def can_delete_bl(status):
    return status not in PROTECTED_STATUSES


def calculate_bl_stats(bills):
    """Count B/Ls per status"""
    stats = {'total': len(bills)}
    stats.update({status: 0 for status in BL_WORKFLOW.statuses})
    for bill in bills:
        if bill.get('status') in BL_WORKFLOW:
            stats[bill['status']] += 1
    return stats


def format_bl_status(status):
    return BL_STATUS_LABELS.get(status, status)


# Berita Acara

def is_valid_ba_status_transition(current, target):
    return BA_WORKFLOW.can_transition(current, target)


def is_ba_terminal(status):
    """Signed and archived reports are final"""
    return BA_WORKFLOW.is_terminal(status)


def format_ba_status(status):
    return BA_STATUS_LABELS.get(status, status)
