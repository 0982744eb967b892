"""Conversational flight booking assistant.

Collects destination, travel dates and departure airport from free text,
confirms them with the user, searches flight offers and lets the user
pick one.
"""
