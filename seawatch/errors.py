"""Exception taxonomy for the analysis pipeline."""

from __future__ import annotations


class SeaWatchError(Exception):
    """Base class for SeaWatch errors."""


class InvalidIdentifierError(SeaWatchError):
    """The caller supplied an event id that is not a UUID."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"Invalid event_id: {raw!r}")
        self.raw = raw


class EventNotFoundError(SeaWatchError):
    """The event id is well formed but no such event exists."""

    def __init__(self, event_id: object) -> None:
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class NoEventsError(EventNotFoundError):
    """A "latest event" lookup found nothing, optionally for one vessel."""

    def __init__(self, vessel_id: str | None = None) -> None:
        SeaWatchError.__init__(self, f"No events found for {vessel_id}" if vessel_id else "No events found")
        self.event_id = None
        self.vessel_id = vessel_id


class GenerationFailure(SeaWatchError):
    """The text generation service could not produce a response.

    Recovered inside the pipeline: the analysis continues with an empty
    payload and degraded confidence.
    """

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause
