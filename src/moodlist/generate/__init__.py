"""
Playlist Generation Module: build and refine playlists.

- Tags become predicates (tags, predicates)
- Predicates are relaxed until enough songs match (search)
- Sampled songs populate a new playlist (assembler)
- Positions stay a gap-free 1..N sequence (membership)
- Feature averages are tuned by swapping members (optimizer)
"""

__all__ = ["features", "predicates", "tags", "search", "assembler", "membership", "optimizer"]
