# constants.py
from astropy import constants as const

# SI values (CODATA 2018): G = 6.6743e-11 m^3 kg^-1 s^-2, c = 299792458 m/s
G = const.G.value
C = const.c.value

SOLAR_MASS = 1.989e30  # kg

PHOTON_SPHERE_FACTOR = 1.5  # photon sphere radius in units of r_s

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
MAGENTA = (255, 0, 255)  # failed pixel
