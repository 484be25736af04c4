import logging
import os

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.lines import Line2D

from lensing.particles import particle_arrays

STATUS_COLORS = {
    'absorbed': 'black',
    'escaped': 'orange',
    'disk': 'gold',
    'step_budget_exceeded': 'purple',
    'failed': 'magenta',
}


def _save(fig, out_path):
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    fig.savefig(out_path, bbox_inches='tight')
    plt.close(fig)


def plot_scene_topdown(session, out_path='images/scene_topdown.png', max_particles=5000):
    """
    Top-down (x-y) view of a scene:
    - event horizon (filled, r_s) and photon sphere (dashed, 1.5 r_s)
    - inner and outer disk radii
    - disk particles coloured by temperature
    - camera position and line of sight
    A second panel zooms on the disk.
    """
    body, camera = session.body, session.camera
    cx, cy = body.position[0], body.position[1]
    fig, (ax_scene, ax_disk) = plt.subplots(1, 2, figsize=(14, 7))

    for ax in (ax_scene, ax_disk):
        ax.add_patch(plt.Circle((cx, cy), body.rs, color='black', label='Event Horizon'))
        ax.add_patch(plt.Circle((cx, cy), body.photon_sphere_radius, color='gray', fill=False,
                                linestyle='--', label='Photon Sphere'))
        ax.add_patch(plt.Circle((cx, cy), session.inner_radius, color='tab:red', fill=False,
                                lw=1, label='Disk Inner Edge'))
        ax.add_patch(plt.Circle((cx, cy), session.outer_radius, color='tab:blue', fill=False,
                                lw=1, label='Disk Outer Edge'))

    positions, _, temperatures = particle_arrays(session.particles)
    if len(positions) > 0:
        if len(positions) > max_particles:
            keep = np.linspace(0, len(positions) - 1, max_particles).astype(int)
            positions, temperatures = positions[keep], temperatures[keep]
        sc = ax_disk.scatter(positions[:, 0], positions[:, 1], c=temperatures, cmap=session.config.colormap,
                             s=1, vmin=0.0, vmax=1.0, label='Particles')
        fig.colorbar(sc, ax=ax_disk, label='Temperature')

    cam = camera.position
    ax_scene.plot(cam[0], cam[1], 'ro', markersize=8, label='Camera')
    sight = cam + camera.forward * 2 * np.linalg.norm(cam - body.position)
    ax_scene.plot([cam[0], sight[0]], [cam[1], sight[1]], 'k--', lw=1, alpha=0.7, label='Line of Sight')

    lim = max(np.linalg.norm(cam[:2] - body.position[:2]), session.outer_radius) * 1.1
    ax_scene.set_xlim(cx - lim, cx + lim)
    ax_scene.set_ylim(cy - lim, cy + lim)
    ax_scene.set_title('Top-Down Scene View')
    disk_lim = session.outer_radius * 1.2
    ax_disk.set_xlim(cx - disk_lim, cx + disk_lim)
    ax_disk.set_ylim(cy - disk_lim, cy + disk_lim)
    ax_disk.set_title(f'Accretion Disk ({len(session.particles)} particles)')

    for ax in (ax_scene, ax_disk):
        ax.set_aspect('equal')
        ax.set_xlabel('x [m]')
        ax.set_ylabel('y [m]')
        handles, labels = ax.get_legend_handles_labels()
        by_label = dict(zip(labels, handles))
        ax.legend(by_label.values(), by_label.keys(), loc='upper right', fontsize='small')

    _save(fig, out_path)
    logging.info(f"Saved top-down scene image to {out_path}")
    return out_path


def plot_trajectories_3d(session, result, out_path='images/sampled_rays_3d.png', azimuths=(30,)):
    """
    3D view of the sampled ray paths of one frame, coloured by how each ray
    terminated, around the event horizon and the disk edges. One image is
    written per azimuth as ``<base>_azim<angle><ext>``.
    """
    body = session.body
    rs = body.rs
    u_sphere, v_sphere = np.mgrid[0:2 * np.pi:40j, 0:np.pi:20j]
    x_s = body.position[0] + rs * np.cos(u_sphere) * np.sin(v_sphere)
    y_s = body.position[1] + rs * np.sin(u_sphere) * np.sin(v_sphere)
    z_s = body.position[2] + rs * np.cos(v_sphere)

    fig = plt.figure(figsize=(9, 9))
    ax = fig.add_subplot(111, projection='3d')
    ax.plot_surface(x_s, y_s, z_s, color='black', alpha=1.0)

    ring = np.linspace(0, 2 * np.pi, 200)
    for radius, color in ((session.inner_radius, 'tab:red'), (session.outer_radius, 'tab:blue')):
        ax.plot(body.position[0] + radius * np.cos(ring), body.position[1] + radius * np.sin(ring),
                np.full_like(ring, body.position[2]), color=color, lw=1)

    if not result.trajectories:
        logging.warning("No sampled rays to plot")
    for (i, j), path in sorted(result.trajectories.items()):
        status = result.statuses[i, j]
        ax.plot(path[:, 0], path[:, 1], path[:, 2], color=STATUS_COLORS.get(status, 'gray'), lw=1)
        ax.scatter(path[0, 0], path[0, 1], path[0, 2], color='lime', s=10)
        ax.scatter(path[-1, 0], path[-1, 1], path[-1, 2], color='red', s=10)

    extent = 1.2 * session.outer_radius
    for axis, c in zip('xyz', body.position):
        getattr(ax, f'set_{axis}lim')(c - extent, c + extent)
    ax.set_xlabel('x [m]')
    ax.set_ylabel('y [m]')
    ax.set_zlabel('z [m]')
    ax.set_title(f'Sampled Rays (frame {result.frame_index})')
    legend_elements = [Line2D([0], [0], color='black', lw=4, label='Event Horizon')]
    legend_elements += [Line2D([0], [0], color=color, lw=2, label=status)
                        for status, color in STATUS_COLORS.items()]
    ax.legend(handles=legend_elements, loc='upper right', fontsize='small')

    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    base, ext = os.path.splitext(out_path)
    written = []
    for azim in azimuths:
        ax.view_init(elev=30, azim=azim)
        out_path_rot = f"{base}_azim{azim}{ext}"
        fig.savefig(out_path_rot)
        written.append(out_path_rot)
        logging.info(f"Saved 3D ray image to {out_path_rot}")
    plt.close(fig)
    return written
