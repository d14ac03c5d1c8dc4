"""Ken Burns slideshow renderer."""

__all__ = ["export_video", "export_frame"]


def export_video(*args, **kwargs):
    from .builder import export_video as _export_video

    return _export_video(*args, **kwargs)


def export_frame(*args, **kwargs):
    from .builder import export_frame as _export_frame

    return _export_frame(*args, **kwargs)
