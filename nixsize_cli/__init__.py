"""nixsize: attribute Nix closure storage cost to individual store paths."""

__version__ = "0.1.0"
