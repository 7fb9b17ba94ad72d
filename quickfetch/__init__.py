"""QuickFetch: rate-limited video metadata lookup for YouTube, Vimeo and direct media links."""

__version__ = "1.0.0"
