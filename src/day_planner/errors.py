from __future__ import annotations


class NoActiveScheduleError(Exception):
    """A modification was requested before any schedule was applied."""


class CandidateNotFoundError(Exception):
    pass


class ExternalStoreError(Exception):
    pass


class NotificationNotFoundError(Exception):
    pass
