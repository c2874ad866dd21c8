"""
Abacus Mastery Engine.

Tracks per-skill mastery with Bayesian Knowledge Tracing, gates progression
on a four-dimension readiness check, plans the next practice session, and
flags anomalies for teacher review.
"""

__version__ = "0.1.0"
