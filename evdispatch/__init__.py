"""In-process event manager with priorities, wildcard names, contexts and background delivery."""

__version__ = "1.0.0"