"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class WorkbookReadError(DomainException):
    """Uploaded workbook could not be opened or has no readable sheet"""

    pass


class NarrativeServiceError(DomainException):
    """Text-generation API returned an error, timed out, or sent an unusable payload"""

    pass


class AssessmentNotFoundError(DomainException):
    """No stored assessment exists for the requested deal"""

    pass
