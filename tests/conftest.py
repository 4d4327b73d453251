"""
Shared fixtures: reference bores used across the test modules.

Positions in cm, diameters in mm (the calculator's input convention).
"""

import pytest

from didgebore.geometry import parse_geometry


# ══════════════════════════════════════════════════════════════════════════════
# REFERENCE BORES
# ══════════════════════════════════════════════════════════════════════════════

# 34 mm PVC pipe cut to 878 mm; plays G2 (98 Hz)
PVC_G2_TEXT = """
0     34
87.8  34
"""

# 34 mm PVC pipe cut to 1171 mm; plays D2 (73.4 Hz)
PVC_D2_TEXT = """
0      34
117.1  34
"""

# Measured didgeridoo, 30 → 90 mm over 1695 mm; sounds C2 (65.5 Hz)
CONICAL_19_TEXT = """
# position(cm)  diameter(mm)
0      30    # mouthpiece
10     30
20     35
30     35
40     35
50     35
60     35
70     35
80     40
90     45
100    45
110    40
120    40
130    50
140    55
150    60
155    65
160    70
169.5  90    // bell
"""


@pytest.fixture
def pvc_g2_text():
    return PVC_G2_TEXT


@pytest.fixture
def pvc_g2():
    """878 mm cylindrical PVC bore."""
    return parse_geometry(PVC_G2_TEXT)


@pytest.fixture
def pvc_d2():
    """1171 mm cylindrical PVC bore."""
    return parse_geometry(PVC_D2_TEXT)


@pytest.fixture
def conical_text():
    return CONICAL_19_TEXT


@pytest.fixture
def conical_bore():
    """19-point strongly conical bore, 1695 mm."""
    return parse_geometry(CONICAL_19_TEXT)
