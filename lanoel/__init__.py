"""
LAN Noel - game voting and team leaderboard for a LAN party.

This package provides:
- Account registration and session-based login
- Voting for up to a fixed number of games per user
- Admin management of games, teams and results
- A team leaderboard computed from recorded results
- A small JSON API for games, leaderboard and votes
"""

from .config import EventConfig
from .database import DatabaseManager
from .web_handlers import WebHandlers
from .server import VotingSystem

__version__ = "1.0.0"
__author__ = "LAN Noel Contributors"

__all__ = [
    "EventConfig",
    "DatabaseManager",
    "WebHandlers",
    "VotingSystem",
]
