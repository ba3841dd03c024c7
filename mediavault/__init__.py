"""MediaVault - Media library backend with background image processing.

This package provides the upload API, the media library and the in-process
job queue that runs metadata extraction and AI analysis for new images.
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
