"""Swing Vote API: contest voting, milestones and spin-wheel rewards."""
