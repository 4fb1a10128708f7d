"""
Constants used across the match coordination system.
"""

# Match capacity bounds (inclusive)
MIN_MATCH_PLAYERS = 4
MAX_MATCH_PLAYERS = 50
DEFAULT_MATCH_PLAYERS = 20

# No look-alike characters (0/O, 1/I/L)
INVITE_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 8
INVITE_CODE_MAX_ATTEMPTS = 10

# Player ratings (inclusive)
MIN_RATING = 1
MAX_RATING = 10

MIN_PASSWORD_LENGTH = 6
