"""123pan offline download backend with post-download renaming."""

__version__ = "1.0.0"
