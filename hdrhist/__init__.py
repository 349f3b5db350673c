"""High Dynamic Range histograms with compressed encoding and log files."""

__version__ = "0.1.0"
__all__ = [
    "codec",
    "encoding",
    "histogram",
    "iteration",
    "logreader",
    "logwriter",
    "timeutil",
]