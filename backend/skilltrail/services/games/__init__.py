"""Game domain services: rules, roster, rounds, scoring and timers.

This package holds the game logic used by the socket handlers and HTTP
routes, keeping transport concerns separated from core game mechanics.
"""
