from .meet import GoogleMeetIntegration, get_meet_integration

__all__ = [
    "GoogleMeetIntegration",
    "get_meet_integration",
]
