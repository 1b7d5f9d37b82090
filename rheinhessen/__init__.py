"""
Rheinhessen AI - Rules engine, heuristic opponents and Q-learning agents for
the four-player card game Rheinhessen.

This package provides a complete implementation of the Rheinhessen rules,
along with AI seats that play the game using persona heuristics or tabular
Q-learning.
"""

__version__ = "0.1.0"
__author__ = "Rheinhessen AI Team"

# Make key components available at package level
from rheinhessen.core.game import Match, MatchState, MatchOptions, create_match, play_turn
from rheinhessen.core.player import Persona, PlayerState
from rheinhessen.core.actions import Decision

