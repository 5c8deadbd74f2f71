# Core subpackage marker.
__all__ = [
    "config",
    "context",
    "errors",
    "ffmpeg",
    "gatekeeper",
    "generator",
    "locks",
    "models",
    "montage",
    "paths",
    "phash",
    "probe",
    "sampler",
    "transcoder",
    "utils",
]
