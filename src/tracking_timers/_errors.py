"""Exception types raised by tracking_timers."""


class TrackingTimerError(Exception):
    """Base class for tracking_timers errors."""


class QueueCapacityError(TrackingTimerError):
    """The cross-process queue refused a record.

    The queue is created unbounded, so this only happens when it was
    misconfigured. Records are never dropped silently; treat this as fatal.
    """


class NotOwnerError(TrackingTimerError):
    """Results were read from a producer-only copy of a timer.

    A timer shipped to a worker process can record, but only the process
    that created it holds the record store.
    """
