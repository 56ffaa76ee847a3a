"""
Custom exception classes for outbound mail.

Never surfaced to HTTP callers; the notification dispatcher records them
on the order instead.
"""


class MailError(Exception):
    """Raised when a message could not be rendered or delivered."""
    pass


class MailNotConfiguredError(MailError):
    """Raised when SMTP credentials or the recipient address are missing."""
    pass
