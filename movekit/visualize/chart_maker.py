from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from plotly.colors import qualitative
from plotly.subplots import make_subplots
import calplot

from movekit.utils import get_logger, pick_unit_distance, pick_unit_speed, pick_unit_seconds

logger = get_logger(__name__)

class ChartMaker:

    _PALETTE = qualitative.Plotly

    _OUTLIER_UNITS = {
        "distance_center": ("Distance to center", pick_unit_distance),
        "speed": ("Speed", pick_unit_speed),
    }

    def __init__(self, template:str="plotly_white"):
        self.template = template

    def color_map(self, identities):
        return {str(identity): self._PALETTE[i % len(self._PALETTE)] for i, identity in enumerate(identities)}

    def create_location_overview(self, merged, title:str="Animal Locations"):
        df = merged.data
        unit, scale = pick_unit_distance(np.concatenate([df["x"], df["y"]]))
        plot_df = df.assign(x_plot=df["x"] / scale, y_plot=df["y"] / scale, identity=df["identity"].astype(str))

        fig = px.scatter(
            plot_df,
            x="x_plot",
            y="y_plot",
            color="identity",
            color_discrete_map=self.color_map(df["identity"].cat.categories),
            hover_data={"timestamp": True, "row_no": True, "x_plot": False, "y_plot": False},
            title=title,
            template=self.template,
        )
        fig.update_traces(marker=dict(size=4))
        fig.update_layout(xaxis_title=f"x ({unit})", yaxis_title=f"y ({unit})", legend_title="Animal")
        fig.update_yaxes(scaleanchor="x", scaleratio=1)
        return fig

    def create_location_facets(self, merged, n_cols:int=3):
        df = merged.data
        identities = list(df["identity"].cat.categories)
        n_rows = int(np.ceil(len(identities) / n_cols))
        colors = self.color_map(identities)

        fig = make_subplots(rows=n_rows, cols=min(n_cols, len(identities)), subplot_titles=identities)
        for i, identity in enumerate(identities):
            animal = df[df["identity"] == identity]
            fig.add_trace(
                go.Scattergl(
                    x=animal["x"],
                    y=animal["y"],
                    mode="markers",
                    marker=dict(size=3, color=colors[identity]),
                    name=identity,
                    showlegend=False
                ),
                row=i // n_cols + 1, col=i % n_cols + 1
            )

        fig.update_layout(title="Locations by Animal", template=self.template, height=320 * n_rows)
        return fig

    def create_sampling_histogram(self, merged):
        df = merged.data.assign(identity=merged.data["identity"].astype(str))
        fig = px.histogram(
            df,
            x="timestamp",
            color="identity",
            color_discrete_map=self.color_map(merged.data["identity"].cat.categories),
            title="Sampling Time",
            template=self.template,
        )
        fig.update_layout(xaxis=dict(tickformat="%Y-%m-%d"), xaxis_title="Time", yaxis_title="Fixes", legend_title="Animal", barmode="stack")
        return fig

    def create_gaps_gantt(self, gaps:list, identity:str, gap_thresh:float=24):
        gaps_df = pd.DataFrame(gaps, columns=["start", "end", "duration_hours"]).reset_index(names="Gap ID")
        gap_fig = px.timeline(
            gaps_df,
            x_start="start",
            x_end="end",
            y="Gap ID",
            color="duration_hours",
            title=f"Sampling Gaps (>{gap_thresh} hours) for {identity}",
            template=self.template,
        )
        gap_fig.update_layout(xaxis=dict(tickformat="%Y-%m-%d %H:%M"))
        return gap_fig

    def create_calendar_heatmap(self, tele):
        dt_series = tele.data["timestamp"].dt.normalize().dt.tz_localize(None).value_counts().sort_index()
        calplot_fig, _ = calplot.calplot(
            data=dt_series,
            suptitle=f"Fixes per Day for {tele.identity}",
            yearlabel_kws={"fontname": "sans-serif"}
        )
        return calplot_fig

    def create_outlier_histogram(self, df:pd.DataFrame, column:str="distance_center", thresh:float=None):
        if column not in self._OUTLIER_UNITS:
            raise ValueError(f"Column must be one of {list(self._OUTLIER_UNITS)}, got '{column}'")

        label, picker = self._OUTLIER_UNITS[column]
        values = df[column].replace(np.inf, np.nan)
        unit, scale = picker(values.dropna())
        plot_df = df.assign(value=values / scale, identity=df["identity"].astype(str))

        fig = px.histogram(
            plot_df.dropna(subset=["value"]),
            x="value",
            color="identity",
            nbins=50,
            title=f"{label} Distribution",
            template=self.template,
        )
        if thresh is not None:
            fig.add_vline(x=thresh / scale, line_dash="dash", line_color="firebrick", annotation_text="threshold")
        fig.update_layout(xaxis_title=f"{label} ({unit})", yaxis_title="Fixes", legend_title="Animal", barmode="stack")
        return fig

    def create_outlier_scatter(self, df:pd.DataFrame, flags:pd.Series):
        plot_df = df.assign(status=np.where(flags.reindex(df.index, fill_value=False), "Outlier", "Kept"))
        fig = px.scatter(
            plot_df,
            x="x",
            y="y",
            color="status",
            color_discrete_map={"Kept": "lightgray", "Outlier": "firebrick"},
            hover_data=["identity", "row_no", "timestamp", "distance_center", "speed"],
            title="Flagged Outliers",
            template=self.template,
        )
        fig.update_yaxes(scaleanchor="x", scaleratio=1)
        return fig

    def create_variogram_plot(self, variogram, models:list=None, fraction:float=0.5):
        vg = variogram.zoom(fraction)
        lag_unit, lag_scale = pick_unit_seconds(vg.lag[1:] if len(vg) > 1 else vg.lag)
        svf_unit, svf_scale = pick_unit_distance(np.sqrt(vg.svf))
        svf_scale = svf_scale**2

        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=vg.lag / lag_scale,
            y=vg.svf / svf_scale,
            mode="markers+lines",
            name="Empirical",
            marker=dict(color="black", size=4),
            line=dict(color="black", width=1),
            customdata=vg.dof,
            hovertemplate="lag %{x:.2f}<br>semi-variance %{y:.2f}<br>pairs %{customdata}<extra></extra>"
        ))

        lag = np.linspace(0, vg.lag.max(), 200)
        for i, model in enumerate(models or []):
            fig.add_trace(go.Scatter(
                x=lag / lag_scale,
                y=model.svf(lag) / svf_scale,
                mode="lines",
                name=model.name,
                line=dict(color=self._PALETTE[i % len(self._PALETTE)], width=2)
            ))

        fig.update_layout(
            title=f"Variogram for {variogram.identity}",
            xaxis_title=f"Time lag ({lag_unit})",
            yaxis_title=f"Semi-variance ({svf_unit}²)",
            template=self.template,
        )
        return fig

    def create_model_comparison_chart(self, selection):
        table = selection.table()
        fig = px.bar(
            table,
            x="dAICc",
            y="model",
            orientation="h",
            color="k",
            title=f"Model Comparison for {selection.identity}",
            template=self.template,
        )
        fig.update_layout(yaxis=dict(categoryorder="total descending"), xaxis_title="ΔAICc", yaxis_title="")
        return fig

    def create_distribution_plot(self, ud, tele=None, levels:tuple=(0.5, 0.95)):
        unit, scale = pick_unit_distance(np.concatenate([ud.x, ud.y]))

        fig = go.Figure()
        fig.add_trace(go.Heatmap(
            x=ud.x / scale,
            y=ud.y / scale,
            z=ud.pdf,
            colorscale="Viridis",
            showscale=False,
            hoverinfo="skip",
        ))

        for level in levels:
            geometry = ud.contours(level)
            polygons = getattr(geometry, "geoms", [geometry])
            for j, polygon in enumerate(polygons):
                if polygon.is_empty or polygon.geom_type != "Polygon":
                    continue
                cx, cy = polygon.exterior.xy
                fig.add_trace(go.Scatter(
                    x=np.asarray(cx) / scale,
                    y=np.asarray(cy) / scale,
                    mode="lines",
                    line=dict(color="white", width=2 if level >= 0.95 else 1),
                    name=f"{level:.0%} contour",
                    legendgroup=f"{level}",
                    showlegend=j == 0
                ))

        if tele is not None:
            fig.add_trace(go.Scattergl(
                x=tele.data["x"] / scale,
                y=tele.data["y"] / scale,
                mode="markers",
                marker=dict(size=3, color="orange"),
                name="Fixes"
            ))

        fig.update_layout(
            title=f"{ud.kind.title()} for {ud.identity}",
            xaxis_title=f"x ({unit})",
            yaxis_title=f"y ({unit})",
            template=self.template,
        )
        fig.update_yaxes(scaleanchor="x", scaleratio=1)
        return fig
