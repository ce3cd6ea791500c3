"""Domain packages for the diary application."""
