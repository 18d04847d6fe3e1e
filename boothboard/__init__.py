"""
Booth board: real-time view state and notifications for an event venue
"""

__version__ = "0.1.0"
