from .view_widget import OrbfieldEngine, OrbfieldViewWidget

__all__ = ["OrbfieldEngine", "OrbfieldViewWidget"]
