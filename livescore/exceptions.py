"""
Internal exceptions.

None of these ever reach a command sender: invalid commands are dropped and
clock faults are logged and fail closed.
"""


class LivescoreException(Exception):
    """Base class for every livescore error"""
    pass


class InvalidCommand(LivescoreException):
    """Malformed or out-of-range command; dropped without a broadcast"""
    def __init__(self, command, reason):
        self.command = command
        self.reason = reason
        super().__init__(f"{command}: {reason}")


class ClockFault(LivescoreException):
    """A clock found itself in an impossible state while ticking"""
    pass
