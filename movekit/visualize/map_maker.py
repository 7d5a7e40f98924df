from __future__ import annotations

from pathlib import Path
import folium
from folium.plugins import HeatMap
import pandas as pd

from movekit.analyze import centermost_point
from movekit.utils import get_logger

logger = get_logger(__name__)

class MapMaker:
    '''
    Interactive leaflet map of animal tracks, outliers and home-range / occurrence contours.
    Every layer lives in its own named feature group so it can be toggled in the layer control.
    '''

    _TILES = {
        "OpenStreetMap": "OpenStreetMap",
        "Topographic": "OpenTopoMap",
        "Light": "CartoDB positron",
    }

    def __init__(self, c_lat:float, c_lon:float, zoom_start:int=11):
        self.m = folium.Map(location=[c_lat, c_lon], zoom_start=zoom_start, tiles=None)
        for name, tiles in self._TILES.items():
            folium.TileLayer(tiles, name=name).add_to(self.m)

        self.feature_groups = {}
        self._has_layer_control = False

        logger.debug(f"MapMaker initialized at ({c_lat:.5f}, {c_lon:.5f}).")

    @classmethod
    def from_merged(cls, merged, zoom_start:int=11):
        '''
        A map centered on the fix closest to the centroid of all fixes.
        '''
        coords = merged.data[["lat", "lon"]].drop_duplicates().to_numpy()
        c_lat, c_lon = centermost_point(coords)
        return cls(c_lat, c_lon, zoom_start)

    def _feature_group(self, name:str, show:bool=True):
        if name in self.feature_groups:
            logger.debug(f"Replacing feature group '{name}'.")
        fg = folium.FeatureGroup(name=name, show=show)
        self.feature_groups[name] = fg
        return fg

    def add_tracks(self, merged, colors:dict=None, name:str="Tracks"):
        '''
        One polyline and one point layer per animal.
        '''
        df = merged.data
        identities = [str(identity) for identity in df["identity"].cat.categories]
        colors = colors or {}

        for i, identity in enumerate(identities):
            animal = df[df["identity"].astype(str) == identity]
            color = colors.get(identity, f"#{(i * 0x3F7A21 + 0x1F77B4) % 0xFFFFFF:06x}")

            fg = self._feature_group(f"{name}: {identity}")
            coords = animal[["lat", "lon"]].to_numpy().tolist()
            folium.PolyLine(coords, color=color, weight=1.5, opacity=0.7).add_to(fg)

            for lat, lon, ts in zip(animal["lat"], animal["lon"], animal["timestamp"]):
                folium.CircleMarker(
                    location=[lat, lon],
                    radius=2,
                    color=color,
                    fill=True,
                    fill_opacity=0.8,
                    tooltip=f"{identity}<br>{ts:%Y-%m-%d %H:%M}",
                ).add_to(fg)

            fg.add_to(self.m)

        logger.debug(f"Added tracks for {len(identities)} animals.")
        return self

    def add_heatmap(self, coords:list, name:str="Heat Map"):
        fg = self._feature_group(name, show=False)
        HeatMap(coords, radius=8, blur=6).add_to(fg)
        fg.add_to(self.m)
        return self

    def add_outliers(self, df:pd.DataFrame, flags:pd.Series, name:str="Outliers"):
        fg = self._feature_group(name)
        outliers = df[flags.reindex(df.index, fill_value=False)]

        for _, row in outliers.iterrows():
            folium.CircleMarker(
                location=[row["lat"], row["lon"]],
                radius=5,
                color="firebrick",
                fill=True,
                fill_opacity=0.9,
                tooltip=(f"{row['identity']} row {row['row_no']}<br>"
                         f"distance {row['distance_center']:.0f} m<br>speed {row['speed']:.2f} m/s"),
            ).add_to(fg)

        fg.add_to(self.m)
        logger.debug(f"Added {len(outliers)} outliers to the map.")
        return self

    def add_distribution(self, ud, name:str=None, levels:tuple=(0.95,), color:str="#1f77b4"):
        '''
        Contours of a UtilizationDistribution as GeoJSON polygons.
        '''
        name = name or f"{ud.kind.title()}: {ud.identity}"
        fg = self._feature_group(name)

        collection = ud.to_geojson(levels=levels)
        folium.GeoJson(
            collection,
            style_function=lambda _: {"color": color, "weight": 2, "fillOpacity": 0.15},
            tooltip=folium.GeoJsonTooltip(fields=["identity", "level", "area_m2"], aliases=["Animal", "Level", "Area (m²)"]),
        ).add_to(fg)

        fg.add_to(self.m)
        return self

    def add_layer_control(self):
        if not self._has_layer_control:
            folium.LayerControl(collapsed=False).add_to(self.m)
            self._has_layer_control = True
        return self

    def save(self, path:str):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.m.save(str(path))
        logger.info(f"Saved map to {path}.")
        return path
