"""
Journey Management Plan (JMP) utilities for heavy-cargo road movements:
risk matrix, JMP and safety document workflows, permit and checkpoint checks
"""
from datetime import timedelta

from gama_erp.core.exceptions import InvalidChoiceError
from gama_erp.core.utils import js_round, minutes_between, to_date, to_datetime, to_decimal
from gama_erp.core.workflows import register_workflow

# Ordered from lowest to highest
LIKELIHOODS = ('rare', 'unlikely', 'possible', 'likely', 'almost_certain')
CONSEQUENCES = ('insignificant', 'minor', 'moderate', 'major', 'catastrophic')
RISK_LEVELS = ('low', 'medium', 'high', 'extreme')

# likelihood -> risk level per consequence, in CONSEQUENCES order
RISK_MATRIX = {
    'rare': ('low', 'low', 'low', 'medium', 'medium'),
    'unlikely': ('low', 'low', 'medium', 'medium', 'high'),
    'possible': ('low', 'medium', 'medium', 'high', 'high'),
    'likely': ('medium', 'medium', 'high', 'high', 'extreme'),
    'almost_certain': ('medium', 'high', 'high', 'extreme', 'extreme'),
}

RISK_LEVEL_LABELS = {
    'low': 'Low',
    'medium': 'Medium',
    'high': 'High',
    'extreme': 'Extreme',
}

JMP_STATUS_LABELS = {
    'draft': 'Draft',
    'pending_review': 'Pending Review',
    'approved': 'Approved',
    'active': 'Active',
    'completed': 'Completed',
    'cancelled': 'Cancelled',
}

LOCATION_TYPE_LABELS = {
    'departure': 'Departure',
    'waypoint': 'Waypoint',
    'rest_stop': 'Rest Stop',
    'checkpoint': 'Checkpoint',
    'fuel_stop': 'Fuel Stop',
    'arrival': 'Arrival',
}

JMP_WORKFLOW = register_workflow('jmp', {
    'draft': ['pending_review', 'cancelled'],
    'pending_review': ['approved', 'draft'],
    'approved': ['active', 'cancelled'],
    'active': ['completed', 'cancelled'],
    'completed': [],
    'cancelled': [],
}, labels=JMP_STATUS_LABELS)

SAFETY_DOCUMENT_STATUS_LABELS = {
    'draft': 'Draft',
    'pending_review': 'Pending Review',
    'approved': 'Approved',
    'expired': 'Expired',
    'superseded': 'Superseded',
    'archived': 'Archived',
}

SAFETY_DOCUMENT_WORKFLOW = register_workflow('safety_document', {
    'draft': ['pending_review'],
    'pending_review': ['approved', 'draft'],
    'approved': ['superseded', 'archived', 'expired'],
    'expired': ['archived'],
    'superseded': ['archived'],
    'archived': [],
}, labels=SAFETY_DOCUMENT_STATUS_LABELS)

PERMIT_EXPIRY_WARNING_DAYS = 7
ARRIVAL_TOLERANCE_KM = 5


# Risk assessment

def calculate_risk_level(likelihood, consequence):
    """Look up the risk level of a hazard in the 5x5 matrix"""
    if likelihood not in RISK_MATRIX:
        raise InvalidChoiceError('likelihood', likelihood, LIKELIHOODS)
    if consequence not in CONSEQUENCES:
        raise InvalidChoiceError('consequence', consequence, CONSEQUENCES)
    return RISK_MATRIX[likelihood][CONSEQUENCES.index(consequence)]


def risk_level_rank(level):
    """0 for low up to 3 for extreme"""
    if level not in RISK_LEVELS:
        raise InvalidChoiceError('risk level', level, RISK_LEVELS)
    return RISK_LEVELS.index(level)


def format_risk_level(level):
    return RISK_LEVEL_LABELS.get(level, level)


def highest_risk_level(levels):
    """Highest of the given risk levels, None when there are none"""
    levels = list(levels)
    if not levels:
        return None
    return max(levels, key=risk_level_rank)


# Status

def is_valid_status_transition(current, target):
    return JMP_WORKFLOW.can_transition(current, target)


def format_jmp_status(status):
    return JMP_STATUS_LABELS.get(status, status)


def is_valid_safety_document_transition(current, target):
    return SAFETY_DOCUMENT_WORKFLOW.can_transition(current, target)


def is_safety_document_terminal(status):
    return SAFETY_DOCUMENT_WORKFLOW.is_terminal(status)


def format_safety_document_status(status):
    return SAFETY_DOCUMENT_STATUS_LABELS.get(status, status)


def format_location_type(location_type):
    return LOCATION_TYPE_LABELS.get(location_type, location_type)


# Validation

def _blank(value):
    return not value or not str(value).strip()


def validate_jmp_form(data):
    """
    Validate the header of a journey management plan.

    Returns:
        dict: {'valid': bool, 'errors': [str]}
    """
    errors = []
    if _blank(data.get('journey_title')):
        errors.append('Journey title is required')
    if _blank(data.get('cargo_description')):
        errors.append('Cargo description is required')
    if _blank(data.get('origin_location')):
        errors.append('Origin location is required')
    if _blank(data.get('destination_location')):
        errors.append('Destination location is required')

    departure = data.get('planned_departure')
    arrival = data.get('planned_arrival')
    if departure and arrival and to_datetime(arrival) <= to_datetime(departure):
        errors.append('Planned arrival must be after planned departure')

    return {'valid': not errors, 'errors': errors}


def validate_checkpoint(data):
    errors = []
    if _blank(data.get('location_name')):
        errors.append('Location name is required')
    if not data.get('location_type'):
        errors.append('Location type is required')
    if data.get('km_from_start') is not None and to_decimal(data['km_from_start']) < 0:
        errors.append('KM from start cannot be negative')

    arrival = data.get('planned_arrival')
    departure = data.get('planned_departure')
    if arrival and departure and to_datetime(departure) < to_datetime(arrival):
        errors.append('Planned departure cannot be before planned arrival')

    return {'valid': not errors, 'errors': errors}


# Permits

def is_permit_valid(permit, journey_date):
    """True when the journey date falls inside the permit validity window"""
    journey = to_date(journey_date)
    return to_date(permit['valid_from']) <= journey <= to_date(permit['valid_to'])


def get_permit_status(permit, journey_date):
    """
    'expired' when the permit does not cover the journey date (a permit that
    is not yet valid counts as expired), 'expiring_soon' when it ends within
    7 days of the journey, otherwise 'valid'.
    """
    journey = to_date(journey_date)
    valid_from = to_date(permit['valid_from'])
    valid_to = to_date(permit['valid_to'])

    if valid_to < journey or valid_from > journey:
        return 'expired'
    if valid_to <= journey + timedelta(days=PERMIT_EXPIRY_WARNING_DAYS):
        return 'expiring_soon'
    return 'valid'


# Checkpoints and progress

def calculate_stop_duration(planned_arrival, planned_departure):
    """Minutes between arrival and departure at a stop"""
    return minutes_between(planned_arrival, planned_departure)


def calculate_time_variance(planned, actual):
    """Minutes late (positive) or early (negative)"""
    return minutes_between(planned, actual)


def is_checkpoint_behind_schedule(checkpoint):
    planned = checkpoint.get('planned_arrival')
    actual = checkpoint.get('actual_arrival')
    if not planned or not actual:
        return False
    return to_datetime(actual) > to_datetime(planned)


def calculate_journey_progress(checkpoints):
    """
    Progress of an active journey.

    A checkpoint counts as completed once departed. The current checkpoint
    is the first one that is neither departed nor skipped.
    """
    total = len(checkpoints)
    completed = len([cp for cp in checkpoints if cp.get('status') == 'departed'])
    progress_percent = js_round(completed / total * 100) if total else 0

    current = next(
        (cp for cp in checkpoints if cp.get('status') not in ('departed', 'skipped')),
        None,
    )
    is_on_schedule = True
    if current is not None and current.get('planned_arrival') and current.get('actual_arrival'):
        is_on_schedule = not is_checkpoint_behind_schedule(current)

    return {
        'jmp_id': checkpoints[0].get('jmp_id', '') if checkpoints else '',
        'checkpoints_completed': completed,
        'total_checkpoints': total,
        'progress_percent': progress_percent,
        'is_on_schedule': is_on_schedule,
        'current_checkpoint': current.get('location_name') if current else None,
    }


def sort_checkpoints_by_distance(checkpoints):
    """New list ordered by km from start; a missing km counts as 0"""
    return sorted(checkpoints, key=lambda cp: to_decimal(cp.get('km_from_start')))


def validate_checkpoint_sequence(checkpoints, route_distance_km):
    """A route needs a departure at km 0 and an arrival near the route end"""
    if not checkpoints:
        return {'valid': False, 'errors': ['At least one checkpoint is required']}

    errors = []
    ordered = sort_checkpoints_by_distance(checkpoints)

    departure = next(
        (cp for cp in ordered
         if cp.get('location_type') == 'departure' and to_decimal(cp.get('km_from_start')) == 0),
        None,
    )
    if departure is None:
        errors.append('A departure checkpoint at km 0 is required')

    arrival = next((cp for cp in ordered if cp.get('location_type') == 'arrival'), None)
    route_distance_km = to_decimal(route_distance_km)
    if arrival is None:
        errors.append('An arrival checkpoint at the destination is required')
    elif route_distance_km > 0 and arrival.get('km_from_start') is not None:
        if abs(to_decimal(arrival['km_from_start']) - route_distance_km) > ARRIVAL_TOLERANCE_KM:
            errors.append('Arrival checkpoint should be at or near the route end')

    return {'valid': not errors, 'errors': errors}


# Display

def format_duration(minutes):
    """'45 min', '2h' or '2h 30m'"""
    if minutes < 60:
        return f'{minutes} min'
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f'{hours}h'
    return f'{hours}h {mins}m'


def format_time_variance(minutes):
    if minutes > 0:
        return f'+{format_duration(minutes)} (delayed)'
    if minutes < 0:
        return f'-{format_duration(abs(minutes))} (early)'
    return 'On time'
