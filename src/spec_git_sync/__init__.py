"""Mirror a local store of spec documents into a Git-hosted repository."""

__version__ = "0.3.0"
