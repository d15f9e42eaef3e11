"""Exceptions raised by the assistant services."""


class ActionRejected(Exception):
    """
    A user-correctable validation or business rejection.

    Raised inside the action router's helpers and turned into a
    conversational reply; it never escapes the router.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TeamNotFoundError(ActionRejected):
    """A team name did not match any of the caller's teams."""

    def __init__(self, team_name: str):
        super().__init__(f'I couldn\'t find a team named "{team_name}" in your teams.')
        self.team_name = team_name


class InvalidFilterError(ActionRejected):
    """A find-filter value could not be turned into a query condition."""
    pass


class InvalidAIResponseError(Exception):
    """The model returned output that cannot be used."""

    def __init__(self, reason: str = "AI returned an invalid response"):
        super().__init__(reason)
        self.reason = reason
