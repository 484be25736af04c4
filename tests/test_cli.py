import json
import os

import matplotlib
matplotlib.use('Agg')
import pandas as pd

from config import parse_args, scene_from_args
from main import main


def test_flags_override_the_scene_file(tmp_path):
    path = tmp_path / 'scene.json'
    path.write_text(json.dumps({'width': 64, 'height': 32, 'fovDegrees': 15.0}))
    args = parse_args(['--config', str(path), '--width', '16', '--camera', '0', '1e6', '0'])
    config = scene_from_args(args)
    assert config.width == 16
    assert config.height == 32
    assert config.fov_degrees == 15.0
    assert config.camera_position == (0.0, 1e6, 0.0)


def test_defaults_without_flags():
    config = scene_from_args(parse_args([]))
    assert config.width == 200 and config.render_mode == 'surface'


def test_main_renders_and_writes_diagnostics(tmp_path):
    code = main(['--width', '8', '--height', '4', '--particles', '0', '--grid-resolution', '10',
                 '--frames', '2', '--samples', '2', '--out', str(tmp_path), '--no-progress'])
    assert code == 0
    assert sorted(os.listdir(tmp_path / 'frames')) == ['0000.png', '0001.png']
    df = pd.read_csv(tmp_path / 'photon_data.csv')
    assert len(df) == 2 * 32
    assert set(df['frame']) == {0, 1}
    rays = pd.read_csv(tmp_path / 'sampled_rays.csv')
    assert set(rays['ray_id']) == {0, 1}
    assert os.path.exists(tmp_path / 'scene_topdown.png')


def test_main_rejects_an_invalid_scene(tmp_path):
    assert main(['--fov', '0', '--out', str(tmp_path), '--no-plots']) == 2
    assert not os.path.exists(tmp_path / 'frames')
