# moodlist: mood-tagged playlist generation and tuning
# Package: moodlist

__version__ = "0.1.0"
__author__ = "moodlist contributors"
__description__ = "Build playlists from mood tags and nudge their feature averages"

# Module structure:
#   - moodlist.config     : Configuration management
#   - moodlist.db         : SQLite song catalog and playlist storage
#   - moodlist.exceptions : Error types
#   - moodlist.generate   : Tag translation, relaxation search, assembly,
#                           ordered membership and feature optimization
