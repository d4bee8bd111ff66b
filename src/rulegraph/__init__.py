"""Rule cascade with provenance graph for bank-transaction descriptions.

Free-text descriptions are rewritten through an ordered cascade of
pattern/replacement rules; every intermediate rewrite is recorded as a
node/edge graph so the final category of any input can be explained and
replayed.
"""

__version__ = "0.1.0"
