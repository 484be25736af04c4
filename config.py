import argparse

from lensing.scene import SceneConfig, BACKGROUNDS, DISK_COLOR_SOURCES
from lensing.integrators import INTEGRATORS
from lensing.raytracing import RENDER_MODES

# command line flag -> SceneConfig field
SCENE_FLAGS = {
    'mass': 'mass',
    'camera': 'camera_position',
    'look_at': 'look_at',
    'fov': 'fov_degrees',
    'width': 'width',
    'height': 'height',
    'particles': 'particle_count',
    'grid_resolution': 'grid_resolution',
    'max_steps': 'max_steps',
    'doppler': 'doppler_exponent',
    'mode': 'render_mode',
    'integrator': 'integrator',
    'background': 'background',
    'disk_color': 'disk_color_source',
    'colormap': 'colormap',
    'seed': 'seed',
}


def build_parser():
    parser = argparse.ArgumentParser(description="Black Hole Lensing Renderer")
    parser.add_argument('--config', type=str, default=None, help='JSON scene file (flags override its values)')
    # Scene configurables (default: SceneConfig defaults)
    parser.add_argument('--mass', type=float, default=None, help='Black hole mass in kg (default: 1 solar mass)')
    parser.add_argument('--camera', type=float, nargs=3, default=None, metavar=('X', 'Y', 'Z'), help='Camera position in metres')
    parser.add_argument('--look-at', type=float, nargs=3, default=None, metavar=('X', 'Y', 'Z'), help='Camera target in metres')
    parser.add_argument('--fov', type=float, default=None, help='Vertical field of view in degrees (default: 10)')
    parser.add_argument('--width', type=int, default=None, help='Image width in pixels (default: 200)')
    parser.add_argument('--height', type=int, default=None, help='Image height in pixels (default: 100)')
    parser.add_argument('--particles', type=int, default=None, help='Number of disk particles (default: 20000)')
    parser.add_argument('--grid-resolution', type=int, default=None, help='Voxels per grid axis (default: 100)')
    parser.add_argument('--max-steps', type=int, default=None, help='Step budget per ray (default: 10000)')
    parser.add_argument('--doppler', type=float, default=None, help='Doppler beaming exponent (default: 5)')
    parser.add_argument('--mode', type=str, default=None, choices=RENDER_MODES, help='Render mode (default: surface)')
    parser.add_argument('--integrator', type=str, default=None, choices=sorted(INTEGRATORS), help='Ray stepping strategy (default: euler)')
    parser.add_argument('--background', type=str, default=None, choices=BACKGROUNDS, help='Sky behind the scene (default: black)')
    parser.add_argument('--disk-color', type=str, default=None, choices=DISK_COLOR_SOURCES, help='Disk colour source (default: grid)')
    parser.add_argument('--colormap', type=str, default=None, help='Matplotlib colormap for disk temperature (default: afmhot)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for the disk population')
    # Animation / output configurables
    parser.add_argument('--frames', type=int, default=1, help='Number of frames to render (default: 1)')
    parser.add_argument('--dt', type=float, default=0.001, help='Simulated seconds between frames (default: 0.001)')
    parser.add_argument('--out', type=str, default='images', help='Output directory (default: images)')
    parser.add_argument('--samples', type=int, default=20, help='Sampled rays per frame recorded for plotting (default: 20)')
    parser.add_argument('--no-plots', action='store_true', help='Skip the matplotlib scene and ray plots')
    parser.add_argument('--no-progress', action='store_true', help='Disable the per-row progress bar')
    return parser


def parse_args(argv=None):
    return build_parser().parse_args(argv)


def scene_from_args(args):
    """SceneConfig from ``--config`` (if given) with every explicitly passed flag applied on top."""
    config = SceneConfig.from_json(args.config) if args.config else SceneConfig()
    changes = {}
    for flag, field in SCENE_FLAGS.items():
        value = getattr(args, flag)
        if value is not None:
            changes[field] = tuple(value) if isinstance(value, list) else value
    return config.replace(**changes) if changes else config
