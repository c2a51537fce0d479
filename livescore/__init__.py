"""
Live scoreboard server.

Keeps one authoritative match state (scores, fouls, quarter, period clock and
shot clock) in memory and pushes a snapshot to every connected observer.
"""

__version__ = "1.0.0"
