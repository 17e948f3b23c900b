"""
Schedule errors

Only whole-document failures are exceptions. A missing current/next
program or an undecodable timestamp is reported as ``None``.
"""


class ScheduleError(Exception):
    """Base class for failures that leave the caller without schedule data"""
    pass


class FetchError(ScheduleError):
    """Raised when the XMLTV document cannot be downloaded"""
    pass


class ParseError(ScheduleError):
    """Raised when the downloaded bytes are not a usable XMLTV document"""
    pass
