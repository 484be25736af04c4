#main.py
import logging
import os
import sys

import pandas as pd

from config import parse_args, scene_from_args
from lensing.errors import InvalidSceneConfigurationError
from lensing.raytracing import STATUSES
from lensing.session import RenderSession
from visualization.frames import FrameWriter
from visualization.plot import plot_scene_topdown, plot_trajectories_3d

# ---
# SI UNITS: metres, kilograms, seconds
# Schwarzschild radius: r_s = 2GM / c^2 (about 2.95 km for one solar mass)
# ---

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s')
logging.getLogger('matplotlib').setLevel(logging.WARNING)
logging.getLogger('numba').setLevel(logging.ERROR)


def main(argv=None):
    args = parse_args(argv)
    try:
        config = scene_from_args(args)
        session = RenderSession(config)
    except InvalidSceneConfigurationError as e:
        logging.error(f"Invalid scene configuration: {e}")
        return 2

    with session:
        if not args.no_plots:
            logging.info("Saving top-down scene view...")
            plot_scene_topdown(session, out_path=os.path.join(args.out, 'scene_topdown.png'))

        frames = []
        writer = FrameWriter(os.path.join(args.out, 'frames'))

        def sink(result):
            writer(result)
            frames.append(result)

        rendered = session.render_sequence(args.frames, args.dt, sink=sink,
                                           n_samples=args.samples, progress=not args.no_progress)
        logging.info(f"Rendered {rendered} frame(s) to {writer.out_dir}")
        if not frames:
            return 0

        # --- Per-pixel diagnostics for every frame ---
        df = pd.concat([frame.to_dataframe().assign(frame=frame.frame_index) for frame in frames],
                       ignore_index=True)
        os.makedirs(args.out, exist_ok=True)
        photon_path = os.path.join(args.out, 'photon_data.csv')
        df.to_csv(photon_path, index=False)
        logging.info(f"Saved per-pixel diagnostics to {photon_path}")

        last = frames[-1]
        rays = last.trajectories_dataframe()
        if len(rays) > 0:
            rays_path = os.path.join(args.out, 'sampled_rays.csv')
            rays.to_csv(rays_path, index=False)
            logging.info(f"Saved {len(last.trajectories)} sampled rays to {rays_path}")
            if not args.no_plots:
                logging.info("Saving 3D sampled ray view...")
                plot_trajectories_3d(session, last, out_path=os.path.join(args.out, 'sampled_rays_3d.png'),
                                     azimuths=(0, 90, 180, 270))

        # --- Photon summary ---
        counts = df['status'].value_counts()
        logging.info("Photon summary:")
        for status in STATUSES:
            logging.info(f"  {status}: {int(counts.get(status, 0))}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
