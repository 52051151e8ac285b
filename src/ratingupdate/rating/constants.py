"""
Glicko-2 scale and default rating constants.

Ratings are stored on the Glicko-2 internal scale (mu, phi). The display
scale shown to players is the classic Glicko scale, with the deviation
doubled so it reads as a ~95% interval:

    display value     = value * GLICKO_SCALE + DISPLAY_OFFSET
    display deviation = deviation * GLICKO_SCALE * 2

Defaults:
  - New entrants start at display 1500 with the maximum deviation (350
    display RD on the classic one-sigma scale), i.e. "fully uncertain".
  - The deviation never drops below MIN_DEVIATION so the system never
    claims certainty.
  - Volatility is held constant for every pair. It is a tunable parameter
    (see scripts/tune_volatility.py), not per-rating state.
"""

import math

# Conversion factor between the Glicko and Glicko-2 scales (400 / ln 10)
GLICKO_SCALE = 173.7178

# Display rating of internal value 0
DISPLAY_OFFSET = 1500.0

INITIAL_VALUE = 0.0
MAX_DEVIATION = 350.0 / GLICKO_SCALE
INITIAL_DEVIATION = MAX_DEVIATION
MIN_DEVIATION = 30.0 / GLICKO_SCALE
DEFAULT_VOLATILITY = 0.06

# Precomputed for g(phi)
THREE_OVER_PI_SQUARED = 3.0 / (math.pi ** 2)

# Game floor reserved for the top tier
CELESTIAL_FLOOR = 99

RATING_DEFAULTS = {
    "initial_value": INITIAL_VALUE,
    "initial_deviation": INITIAL_DEVIATION,
    "max_deviation": MAX_DEVIATION,
    "min_deviation": MIN_DEVIATION,
    "volatility": DEFAULT_VOLATILITY,
}
