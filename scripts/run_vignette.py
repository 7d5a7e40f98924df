"""
End-to-end movement analysis over a Movebank CSV.

Usage
-----
python scripts/run_vignette.py data/animals.csv --out results/

Steps: read and merge telemetry, flag and remove outliers, compute variograms,
fit candidate movement models in parallel, estimate home ranges and occurrence
distributions, and write tables, GeoJSON contours, charts and an interactive map.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from movekit.analyze import OutlierDetector
from movekit.batch import par_hrange_each, par_occur, par_try_models, par_variograms
from movekit.telemetry import MovebankReader, merge_tracks
from movekit.utils import get_logger, setup_logging, settings
from movekit.visualize import ChartMaker, MapMaker

logger = get_logger(__name__)

def parse_args():
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("csv", type=str, help="Movebank CSV file")
    ap.add_argument("--out", type=str, default="results", help="Output directory")
    ap.add_argument("--cores", type=int, default=settings.CORES, help="Worker processes (default: all cores)")
    ap.add_argument("--sequential", action="store_true", help="Disable parallel model fitting")
    ap.add_argument("--outlier-quantile", type=float, default=None, help="Flag fixes above this quantile of distance / speed")
    ap.add_argument("--max-speed", type=float, default=None, help="Flag fixes faster than this (m/s)")
    ap.add_argument("--max-distance", type=float, default=None, help="Flag fixes farther than this from the animal's center (m)")
    ap.add_argument("--levels", type=float, nargs="+", default=[0.5, 0.95], help="Home-range contour levels")
    ap.add_argument("--no-cache", action="store_true", help="Ignore the parsed-data cache")
    ap.add_argument("--log-dir", type=str, default=settings.LOG_DIR, help="Directory for log files")
    return ap.parse_args()

def main() -> int:
    args = parse_args()
    setup_logging(log_dir=args.log_dir, level=settings.LOG_LEVEL)

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    parallel = not args.sequential

    # Read / merge
    reader = MovebankReader(args.csv)
    tele_list = reader.read_telemetry(use_cache=not args.no_cache)
    merged = merge_tracks(tele_list)
    merged.info.to_csv(out / "sampling_summary.csv", index=False)

    chart_maker = ChartMaker()
    chart_maker.create_location_overview(merged).write_html(out / "locations.html")
    chart_maker.create_sampling_histogram(merged).write_html(out / "sampling_time.html")

    # Outliers
    detector = OutlierDetector(distance_thresh=args.max_distance, speed_thresh=args.max_speed)
    measured = detector.detect(merged)
    if args.outlier_quantile is not None:
        detector.quantile_thresholds(measured, args.outlier_quantile)
    flags = detector.flag(measured)
    measured.assign(outlier=flags).to_csv(out / "outliers.csv", index=False)

    if flags.any():
        tele_list = detector.remove(tele_list, measured[flags])
        merged = merge_tracks(tele_list, projection=merged.projection)

    # Variograms / models
    variograms = par_variograms(tele_list, cores=args.cores, parallel=parallel)
    selections = par_try_models(tele_list, cores=args.cores, parallel=parallel)

    for identity, selection in selections.items():
        selection.table().assign(identity=identity).to_csv(out / f"models_{identity}.csv", index=False)
        chart_maker.create_variogram_plot(variograms[identity], models=selection.models[:2]).write_html(out / f"variogram_{identity}.html")

    # Home range / occurrence
    home_ranges = par_hrange_each(tele_list, selections, cores=args.cores, parallel=parallel)
    occurrences = par_occur(tele_list, selections, cores=args.cores, parallel=parallel)

    map_maker = MapMaker.from_merged(merged)
    map_maker.add_tracks(merged, colors=chart_maker.color_map(merged.data["identity"].cat.categories))
    map_maker.add_heatmap(merged.data[["lat", "lon"]].to_numpy().tolist())

    for tele in tele_list:
        hr = home_ranges[tele.identity]
        hr.to_geojson(out / f"home_range_{tele.identity}.geojson", levels=tuple(args.levels))
        hr.summary(tuple(args.levels)).to_csv(out / f"home_range_{tele.identity}.csv", index=False)
        chart_maker.create_distribution_plot(hr, tele, levels=tuple(args.levels)).write_html(out / f"home_range_{tele.identity}.html")
        chart_maker.create_distribution_plot(occurrences[tele.identity], tele).write_html(out / f"occurrence_{tele.identity}.html")
        map_maker.add_distribution(hr, levels=tuple(args.levels))

    map_maker.add_layer_control()
    map_maker.save(out / "map.html")

    logger.info(f"Finished analysis of {len(tele_list)} animals; results written to {out}.")
    return 0

if __name__=="__main__":

    raise SystemExit(main())
