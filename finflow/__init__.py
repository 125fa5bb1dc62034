"""
FinFlow

Personal and joint finance tracker served as a Telegram Mini App.

DESIGN PRINCIPLES:
1. One state document per user, replaced wholesale
2. Every balance is derived, never stored twice
3. Side effects of a transaction are reversible by deleting it
4. Sync failures degrade to "unsaved", never to a crash
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinFlow Team"
