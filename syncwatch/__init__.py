"""Mirror a local directory into an S3-compatible bucket as files change."""

__version__ = "0.1.0"
