"""
PIB (import declaration) utilities: duty calculation, validation,
status workflow, filtering and display helpers
"""
import re

from django.conf import settings

from gama_erp.core.utils import HUNDRED, ZERO, round_money, to_date, to_decimal, today
from gama_erp.core.workflows import register_workflow

PIB_STATUS_LABELS = {
    'draft': 'Draft',
    'submitted': 'Submitted',
    'document_check': 'Document Check',
    'physical_check': 'Physical Check',
    'duties_paid': 'Duties Paid',
    'released': 'Released',
    'completed': 'Completed',
    'cancelled': 'Cancelled',
}

PIB_WORKFLOW = register_workflow('pib', {
    'draft': ['submitted', 'cancelled'],
    'submitted': ['document_check', 'cancelled'],
    'document_check': ['physical_check', 'duties_paid', 'cancelled'],
    'physical_check': ['duties_paid', 'cancelled'],
    'duties_paid': ['released'],
    'released': ['completed'],
    'completed': [],
    'cancelled': [],
}, labels=PIB_STATUS_LABELS)

TRANSPORT_MODE_LABELS = {
    'sea': 'Sea Freight',
    'air': 'Air Freight',
    'land': 'Land Transport',
}

PIB_INTERNAL_REF_RE = re.compile(r'PIB-[0-9]{4}-[0-9]{5}')
HS_CODE_RE = re.compile(r'[0-9]{6,10}')

SEARCH_FIELDS = ('internal_ref', 'pib_number', 'importer_name', 'aju_number')


def default_ppn_rate():
    return to_decimal(getattr(settings, 'GAMA_DEFAULT_PPN_RATE', 11))


# Values and duties

def calculate_cif_value(fob_value, freight_value=0, insurance_value=0):
    """CIF = FOB + freight + insurance"""
    return to_decimal(fob_value) + to_decimal(freight_value) + to_decimal(insurance_value)


def calculate_item_total_price(quantity, unit_price):
    return to_decimal(quantity) * to_decimal(unit_price)


def calculate_item_duties(total_price, bm_rate=0, ppn_rate=None, pph_rate=0):
    """
    Import duties of one item.

    Bea masuk is charged on the item price; PPN and PPh import are charged
    on price + bea masuk. Each component is rounded to 2 places, the total
    is the rounded sum of the unrounded components.

    Args:
        total_price: Item price (quantity x unit price)
        bm_rate: Bea masuk rate in percent
        ppn_rate: PPN rate in percent, GAMA_DEFAULT_PPN_RATE when None
        pph_rate: PPh import rate in percent

    Returns:
        dict: bea_masuk, ppn, pph_import, total
    """
    if ppn_rate is None:
        ppn_rate = default_ppn_rate()
    total_price = to_decimal(total_price)
    bea_masuk = total_price * to_decimal(bm_rate) / HUNDRED
    tax_base = total_price + bea_masuk
    ppn = tax_base * to_decimal(ppn_rate) / HUNDRED
    pph_import = tax_base * to_decimal(pph_rate) / HUNDRED

    return {
        'bea_masuk': round_money(bea_masuk),
        'ppn': round_money(ppn),
        'pph_import': round_money(pph_import),
        'total': round_money(bea_masuk + ppn + pph_import),
    }


def aggregate_pib_duties(items):
    """Sum item duties into PIB totals"""
    bea_masuk = sum((to_decimal(item.get('bea_masuk')) for item in items), ZERO)
    ppn = sum((to_decimal(item.get('ppn')) for item in items), ZERO)
    pph_import = sum((to_decimal(item.get('pph_import')) for item in items), ZERO)
    return {
        'bea_masuk': round_money(bea_masuk),
        'ppn': round_money(ppn),
        'pph_import': round_money(pph_import),
        'total_duties': round_money(bea_masuk + ppn + pph_import),
    }


def convert_to_idr(value, exchange_rate):
    """Convert a foreign currency value to whole rupiah"""
    return round_money(to_decimal(value) * to_decimal(exchange_rate), 0)


# References

def generate_pib_internal_ref(sequence, year=None):
    """PIB-YYYY-NNNNN"""
    year = year or today().year
    return f'PIB-{year}-{sequence:05d}'


def is_valid_pib_internal_ref(ref):
    return bool(ref) and bool(PIB_INTERNAL_REF_RE.fullmatch(ref))


def validate_hs_code(hs_code):
    """HS codes are 6-10 digits; dots are ignored"""
    return bool(HS_CODE_RE.fullmatch((hs_code or '').replace('.', '')))


# Status

def can_transition_status(current, target):
    return PIB_WORKFLOW.can_transition(current, target)


def get_next_allowed_statuses(current):
    return PIB_WORKFLOW.next_statuses(current)


def can_edit_pib(status):
    """Only drafts can be edited"""
    return status == 'draft'


def can_delete_pib(status):
    """Only drafts can be deleted"""
    return status == 'draft'


# Validation

def _blank(value):
    return not value or not str(value).strip()


def validate_pib_document(data):
    """
    Validate PIB header data.

    Returns:
        dict: {'valid': bool, 'errors': [{'field': str, 'message': str}]}
    """
    errors = []
    if _blank(data.get('importer_name')):
        errors.append({'field': 'importer_name', 'message': 'Importer name is required'})
    if not data.get('import_type_id'):
        errors.append({'field': 'import_type_id', 'message': 'Import type must be selected'})
    if not data.get('customs_office_id'):
        errors.append({'field': 'customs_office_id', 'message': 'Customs office must be selected'})
    if not data.get('transport_mode'):
        errors.append({'field': 'transport_mode', 'message': 'Transport mode is required'})

    fob_value = data.get('fob_value')
    if fob_value is None or to_decimal(fob_value) < 0:
        errors.append({'field': 'fob_value', 'message': 'FOB value must be a positive number'})

    exchange_rate = data.get('exchange_rate')
    if exchange_rate is not None and to_decimal(exchange_rate) <= 0:
        errors.append({'field': 'exchange_rate', 'message': 'Exchange rate must be a positive number'})

    return {'valid': not errors, 'errors': errors}


def validate_pib_item(data):
    errors = []
    hs_code = data.get('hs_code')
    if _blank(hs_code):
        errors.append({'field': 'hs_code', 'message': 'HS code is required'})
    elif not validate_hs_code(hs_code):
        errors.append({'field': 'hs_code', 'message': 'Invalid HS code format'})

    if _blank(data.get('goods_description')):
        errors.append({'field': 'goods_description', 'message': 'Goods description is required'})

    quantity = data.get('quantity')
    if quantity is None or to_decimal(quantity) <= 0:
        errors.append({'field': 'quantity', 'message': 'Quantity must be a positive number'})

    if _blank(data.get('unit')):
        errors.append({'field': 'unit', 'message': 'Unit is required'})

    unit_price = data.get('unit_price')
    if unit_price is None or to_decimal(unit_price) < 0:
        errors.append({'field': 'unit_price', 'message': 'Unit price must be a positive number'})

    return {'valid': not errors, 'errors': errors}


# Filtering

def filter_pib_documents(documents, filters):
    """
    Filter by status, customs office and ETA range (inclusive).

    Documents without an ETA are excluded whenever a date bound is set.
    """
    status = filters.get('status')
    office = filters.get('customs_office_id')
    date_from = to_date(filters.get('date_from'))
    date_to = to_date(filters.get('date_to'))

    result = []
    for doc in documents:
        if status and doc.get('status') != status:
            continue
        if office and doc.get('customs_office_id') != office:
            continue
        eta = to_date(doc.get('eta_date'))
        if eta is None:
            if date_from or date_to:
                continue
        else:
            if date_from and eta < date_from:
                continue
            if date_to and eta > date_to:
                continue
        result.append(doc)
    return result


def search_pib_documents(documents, term):
    """Case-insensitive search on reference, PIB number, importer and AJU number"""
    if not term or not term.strip():
        return list(documents)
    term = term.strip().lower()
    return [
        doc for doc in documents
        if any(term in (doc.get(field) or '').lower() for field in SEARCH_FIELDS)
    ]


# Display

def format_pib_status(status):
    return PIB_STATUS_LABELS.get(status, status)


def format_transport_mode(mode):
    return TRANSPORT_MODE_LABELS.get(mode, mode)


def format_pib_reference(internal_ref, pib_number=None):
    """'PIB-2025-00001 (123456)' once the customs number is known"""
    if pib_number:
        return f'{internal_ref} ({pib_number})'
    return internal_ref


def format_pib_date(value):
    """DD/MM/YYYY, '-' when missing"""
    if not value:
        return '-'
    return to_date(value).strftime('%d/%m/%Y')
