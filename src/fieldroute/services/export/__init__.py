"""Export services."""

from .geojson import day_color, result_to_geojson, save_geojson

__all__ = [
    "day_color",
    "result_to_geojson",
    "save_geojson",
]
