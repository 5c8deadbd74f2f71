"""markerkit: scene-marker derivative generation (preview clips, animated
thumbnails, screenshots) and video perceptual hashing."""

__version__ = "0.4.0"
