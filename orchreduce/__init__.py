"""orchreduce: reduce multi-part scores to a fixed number of playable staves."""

__version__ = "0.1.0"
