"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class UnsupportedFormatError(DomainException):
    """No registered parser recognises the CSV header row"""

    pass


class StatementNotFoundError(DomainException):
    """Statement does not exist for the requesting user"""

    pass


class MailboxAPIError(DomainException):
    """Mailbox transport returned an error or is unavailable"""

    pass
