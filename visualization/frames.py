import logging
import os

import numpy as np
from PIL import Image


class FrameWriter:
    """
    Frame sink for ``RenderSession.render_sequence``: saves every frame as
    ``<out_dir>/0000.png``, ``0001.png``, ...
    """
    def __init__(self, out_dir, digits=4):
        self.out_dir = out_dir
        self.digits = digits
        self.paths = []

    def path_for(self, index):
        return os.path.join(self.out_dir, f"{index:0{self.digits}d}.png")

    def write(self, index, image):
        os.makedirs(self.out_dir, exist_ok=True)
        out_path = self.path_for(index)
        Image.fromarray(np.asarray(image, dtype=np.uint8)).save(out_path)
        self.paths.append(out_path)
        logging.info(f"Saved frame {index} to {out_path}")
        return out_path

    def __call__(self, result):
        return self.write(result.frame_index, result.image)
