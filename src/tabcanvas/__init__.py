"""Editor canvas: panes, split topologies and the tab lifecycle."""

__version__ = "0.1.0"
