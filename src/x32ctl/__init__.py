"""x32ctl: OSC client and simulator for Behringer X32 consoles."""

__version__ = "0.1.0"
