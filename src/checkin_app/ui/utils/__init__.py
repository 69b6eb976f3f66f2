from .assets import get_asset_path, load_icon_image

__all__ = ["get_asset_path", "load_icon_image"]
