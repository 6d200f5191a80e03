"""photocull: histogram-driven enhancement and result caching for photo culling."""

__version__ = "0.1.0"
