# tagdetect

Finds the outlines of square visual fiducial tags in a grayscale image. The
image is a two-dimensional `numpy` array of `uint8`; the result is a list of
`Quad` objects, each holding four fitted corners in pixel coordinates and,
once computed, the homography from tag coordinates to pixels.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Usage

`quad_thresh` runs the whole quad-finding pipeline. It needs to know the
tag families you are looking for only through two attributes of each:
`width_at_border` (the tag's width in bits at the black border) and
`reversed_border` (whether the border is light on dark). Any object with
those attributes will do.

```python
from types import SimpleNamespace

import numpy as np

from tagdetect.edges import refine_edges
from tagdetect.homography import HomographyError, homography_project
from tagdetect.quadthresh import quad_thresh

family = SimpleNamespace(width_at_border=8, reversed_border=False)
image = np.asarray(gray_image, dtype=np.uint8)

quads = quad_thresh(None, [family], 1.0, image)
for quad in quads:
    refine_edges(image, quad, 1.0)   # snap edges to nearby gradients, in place
    try:
        quad.update_homographies()
    except HomographyError:
        continue
    centre = homography_project(quad.h, 0.0, 0.0)
    print(quad.p, quad.reversed_border, centre)
```

Passing `None` as the parameters uses the defaults of `QuadThreshParams`
(`tagdetect.threshold`): `min_cluster_pixels=5`, `max_nmaxima=10`,
`cos_critical_rad=cos(10°)`, `max_line_fit_mse=10.0`,
`min_white_black_diff=5`, `deglitch=False`.

The `quad_decimate` argument does not shrink the image; it tells the
pipeline by what factor the image was already shrunk, so that the smallest
accepted tag width is scaled to match. `nthreads` only fixes how rows are
split into chunks when clustering, which determines the order of the result;
the work itself runs in the calling thread.

## Modules

- `tagdetect.threshold` — `threshold` binarises an image from 4x4 tile
  statistics (255 white, 0 black, 127 for low-contrast tiles);
  `threshold_bayer` does the same for Bayer-pattern images, giving 0/1;
  `connected_components` labels regions into a `UnionFind`.
- `tagdetect.clusters` — `gradient_clusters` collects `Point`s on the
  boundary between pairs of large black and white regions;
  `merge_clusters` and `u64hash_2` support it.
- `tagdetect.linefit` — `compute_lfps` builds cumulative
  `LineFitMoments`; `fit_line` fits a `LineFit` to any contiguous,
  possibly wrapping, run of points.
- `tagdetect.segment` — `quad_segment_maxima` and `quad_segment_agg`
  choose the four corner indices of a contour.
- `tagdetect.quadfit` — `ptsort` orders points by angle; `fit_quad` fits
  and checks one quad (size, angles, winding, border polarity).
- `tagdetect.quadthresh` — `fit_quads` over a list of clusters and
  `quad_thresh` over a whole image.
- `tagdetect.homography` — `Quad`, `homography_compute2`,
  `homography_project`, and `HomographyError` raised by
  `Quad.update_homographies` for degenerate corners.
- `tagdetect.edges` — `refine_edges` moves a quad's corners onto lines
  fitted to strong gradients near its edges.
- `tagdetect.mathutil` — angle wrapping (`mod2pi`, `mod360`, ...),
  `theta_to_int`, clamping and comparison helpers.

Image sizes must stay below 32768 pixels in each dimension, and
`threshold` needs an image of at least 4x4 pixels.

## What this package does not do

It stops at candidate quads. It holds no tag family codes, does not sample
or decode the bits inside a quad, does not correct bit errors, and does not
report tag ids or decision margins. It has no detector object, no
command-line program, and writes no debug images.