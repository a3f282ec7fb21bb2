"""Exceptions raised by the business-rule utilities"""


class GamaError(Exception):
    """Base class for errors raised by gama_erp utilities"""


class InvalidChoiceError(GamaError, ValueError):
    """A value outside a closed vocabulary (likelihood, channel, operator...)"""

    def __init__(self, field, value, choices):
        self.field = field
        self.value = value
        self.choices = list(choices)
        super().__init__(f"Invalid {field} '{value}'. Must be one of: {', '.join(self.choices)}")


class UnknownStatusError(InvalidChoiceError):
    """A status that does not exist in a workflow table"""

    def __init__(self, workflow, value, choices):
        self.workflow = workflow
        super().__init__(f'{workflow} status', value, choices)


class UnknownWorkflowError(GamaError, LookupError):
    """Lookup of a workflow name that was never registered"""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Unknown workflow '{name}'")
