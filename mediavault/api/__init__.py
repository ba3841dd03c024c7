"""MediaVault REST API.

Upload, queue status and AI analysis endpoints for the gallery frontend.
"""

from mediavault.api.main import create_app, run_server

__all__ = ["create_app", "run_server"]
