"""diffintel: structural change intelligence for source-control diffs."""

__version__ = "0.3.0"
