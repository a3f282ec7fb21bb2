"""
Status workflows for business documents.

A workflow is a static allowlist table: each status maps to the statuses it
may move to. Statuses with an empty allowlist are terminal.
"""
import logging

from .exceptions import UnknownStatusError, UnknownWorkflowError

logger = logging.getLogger(__name__)

_REGISTRY = {}


class StatusWorkflow:
    """Allowlist of status transitions for one document type"""

    def __init__(self, name, transitions, labels=None):
        self.name = name
        self._transitions = {status: tuple(targets) for status, targets in transitions.items()}
        self._labels = dict(labels or {})

        for status, targets in self._transitions.items():
            for target in targets:
                if target not in self._transitions:
                    raise UnknownStatusError(name, target, self._transitions.keys())

    def __repr__(self):
        return f'<StatusWorkflow {self.name}>'

    def __contains__(self, status):
        return status in self._transitions

    @property
    def statuses(self):
        return list(self._transitions)

    @property
    def terminal_statuses(self):
        return [status for status, targets in self._transitions.items() if not targets]

    def can_transition(self, current, target):
        """True iff target is in the allowlist of current"""
        return target in self._transitions.get(current, ())

    def next_statuses(self, current):
        return list(self._transitions.get(current, ()))

    def is_terminal(self, status):
        if status not in self._transitions:
            raise UnknownStatusError(self.name, status, self._transitions.keys())
        return not self._transitions[status]

    def label(self, status):
        if status in self._labels:
            return self._labels[status]
        return status.replace('_', ' ').title()

    def check_transition(self, current, target):
        """
        Check a transition and explain a rejection.

        Returns:
            dict: {'valid': bool, 'error': str or None}
        """
        if self.can_transition(current, target):
            return {'valid': True, 'error': None}
        return {
            'valid': False,
            'error': f"Cannot change status from '{current}' to '{target}'",
        }

    def as_dict(self):
        return {
            'name': self.name,
            'statuses': [
                {
                    'status': status,
                    'label': self.label(status),
                    'next': list(targets),
                    'terminal': not targets,
                }
                for status, targets in self._transitions.items()
            ],
        }


def register_workflow(name, transitions, labels=None):
    """Create a workflow and make it available through get_workflow()"""
    workflow = StatusWorkflow(name, transitions, labels)
    if name in _REGISTRY:
        logger.debug(f"Replacing registered workflow '{name}'")
    _REGISTRY[name] = workflow
    return workflow


def get_workflow(name):
    try:
        return _REGISTRY[name]
    except KeyError:
        raise UnknownWorkflowError(name) from None


def all_workflows():
    return [_REGISTRY[name] for name in sorted(_REGISTRY)]
