from .radial import make_overlay, make_radial, make_rectangular, radial_depth_mm
