"""
Voter lookup: ranked electoral-roll search for the voter-slip web app and
WhatsApp bot.
"""

__version__ = "0.1.0"
