"""Trello board integration."""

from .card_creator import CardCreator
from .client import TrelloClient
from .parser import CardParser, UNMAPPED, Unmapped

__all__ = ["CardCreator", "CardParser", "TrelloClient", "UNMAPPED", "Unmapped"]
