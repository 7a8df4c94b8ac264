"""Scoreboard domain services: score ledger, leader tracking, game sessions
and the countdown clock.

Routes and socket handlers go through ``TeamTracker``; the pieces below it
hold the core rules and know nothing about HTTP.
"""
