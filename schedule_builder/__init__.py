"""School schedule builder: weekly class grids with breaks, autosave and exports."""

__version__ = "0.1.0"
