"""Exception hierarchy for the happenings occurrence engine.

Classification problems never raise: an event that cannot be understood
degrades to an Unknown pattern. The exceptions below are reserved for caller
contract violations that indicate an upstream bug and should fail fast.
"""


class HappeningsError(Exception):
    """Base exception for all happenings engine errors."""


class InvalidDateKeyError(HappeningsError, ValueError):
    """A date key is not a real calendar date in YYYY-MM-DD form.

    Raised when:
    - A window boundary is malformed (e.g. "2025-1-5", "2025-02-30")
    - A value that must be a date key is not a string
    """


class InvalidWindowError(HappeningsError, ValueError):
    """An expansion window is not a closed, ordered date range.

    Raised when:
    - start_key is later than end_key
    - Either boundary is not a valid date key
    """


class ConfigurationError(HappeningsError, ValueError):
    """An explicitly supplied configuration value is out of range.

    Environment-derived values are logged and ignored instead; this error is
    only raised for values passed directly in code.
    """


class RecurrenceRuleParseError(HappeningsError, ValueError):
    """A structured recurrence token (``FREQ=...;BYDAY=...``) is malformed.

    Only raised by the low-level token parser; the pattern interpreter
    catches it and classifies the event as Unknown.
    """
