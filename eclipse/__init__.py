"""Eclipse: video and community feed state layer."""

__version__ = "0.1.0"
