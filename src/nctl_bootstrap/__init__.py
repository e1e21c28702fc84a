"""Bootstrap the NCTL build workspace for casper-node CI."""

__version__ = "0.1.0"
