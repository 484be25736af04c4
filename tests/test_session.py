import math

import numpy as np
import pytest

from lensing.constants import MAGENTA
from lensing.errors import InvalidSceneConfigurationError, NumericalInstabilityError
from lensing.raytracing import ABSORBED, DISK, ESCAPED, FAILED, STATUSES
from lensing.scene import SceneConfig
from lensing.session import RenderSession


def small_config(**changes):
    options = dict(width=8, height=4, particle_count=200, grid_resolution=10, seed=1)
    options.update(changes)
    return SceneConfig(**options)


def test_invalid_scene_fails_before_rendering():
    with pytest.raises(InvalidSceneConfigurationError):
        RenderSession(small_config(fov_degrees=-1.0))


def test_shadow_of_an_edge_on_scene():
    config = SceneConfig(width=100, height=50, fov_degrees=10.0,
                         camera_position=(0.0, 500000.0, 10000.0), particle_count=0, seed=0)
    with RenderSession(config) as session:
        result = session.render_frame(progress=False)
        # pixels just above the image centre look straight at the body
        assert result.statuses[24, 49] == ABSORBED
        assert result.statuses[24, 50] == ABSORBED
        assert tuple(result.image[24, 50]) == (0, 0, 0)

        rows, cols = np.nonzero(result.mask(ABSORBED))
        distance_px = np.hypot(rows + 0.5 - 25.0, cols + 0.5 - 50.0)
        rs_px = math.degrees(session.camera.angular_size(session.body.rs, session.body.position)) / (10.0 / 50)
        assert 1.0 < rs_px < 2.5
        # lensing enlarges the shadow to a few times the horizon, no more
        assert distance_px.max() < 8 * rs_px

        for corner in ((0, 0), (0, 99), (49, 0), (49, 99)):
            assert result.statuses[corner] == ESCAPED

        summary = result.summary()
        assert sum(summary.values()) == 100 * 50
        assert summary[FAILED] == 0
        assert summary[DISK] > 0


def test_render_frame_diagnostics():
    with RenderSession(small_config()) as session:
        result = session.render_frame(n_samples=3, progress=False)
    assert result.image.shape == (4, 8, 3)
    assert result.image.dtype == np.uint8
    df = result.to_dataframe()
    assert len(df) == 32
    assert list(df.columns) == ['i', 'j', 'status', 'steps', 'disk_intersections', 'final_r', 'error']
    assert set(df['status']) <= set(STATUSES)
    assert len(result.trajectories) == 3
    rays = result.trajectories_dataframe()
    assert set(rays['ray_id']) == {0, 1, 2}


def test_pixel_failure_is_magenta_and_recorded():
    session = RenderSession(small_config(particle_count=0))
    trace = session.tracer.trace
    calls = []

    def flaky_trace(ray, record_path=False):
        calls.append(ray)
        if len(calls) == 1:
            raise NumericalInstabilityError("distance became nan")
        return trace(ray, record_path=record_path)

    session.tracer.trace = flaky_trace
    result = session.render_frame(progress=False)
    assert tuple(result.image[0, 0]) == MAGENTA
    assert result.statuses[0, 0] == FAILED
    failures = result.failures()
    assert len(failures) == 1
    assert 'nan' in failures[0]['error']
    assert result.summary()[FAILED] == 1
    assert len(calls) == 32


def test_advance_moves_particles_and_rebuilds_grid():
    session = RenderSession(small_config(jitter_amplitude=0.0))
    before = np.array([p.position for p in session.particles])
    total_before = session.grid.total_count
    session.advance(1e-5)
    after = np.array([p.position for p in session.particles])
    assert not np.allclose(before, after)
    assert session.time == pytest.approx(1e-5)
    assert session.grid.total_count <= len(session.particles)
    assert total_before > 0


def test_render_sequence_feeds_the_sink_and_can_be_cancelled():
    session = RenderSession(small_config())
    seen = []

    def sink(result):
        seen.append(result.frame_index)
        if len(seen) == 2:
            session.cancel()

    rendered = session.render_sequence(5, 1e-5, sink=sink, progress=False)
    assert rendered == 2
    assert seen == [0, 1]
    assert session.cancelled


def test_closed_session_refuses_work():
    session = RenderSession(small_config(particle_count=0))
    session.close()
    with pytest.raises(RuntimeError):
        session.render_frame(progress=False)


def test_volumetric_session_renders_grey():
    config = small_config(render_mode='volumetric', particle_count=2000, emission_scale=1.0)
    with RenderSession(config) as session:
        result = session.render_frame(progress=False)
    assert result.summary()[FAILED] == 0
    assert np.all(result.image[..., 0] == result.image[..., 1])
    assert np.all(result.image[..., 1] == result.image[..., 2])
