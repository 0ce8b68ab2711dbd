"""
Unit tests for the degree-based trigonometric helpers
"""
import pytest

from tide_harmonics.trig import acosd, asind, atan2d, cosd, sind, tand


class TestSineCosine:
    """Tests for sind and cosd."""

    def test_sind_quadrants(self):
        assert sind(0) == pytest.approx(0.0, abs=1e-12)
        assert sind(90) == pytest.approx(1.0)
        assert sind(180) == pytest.approx(0.0, abs=1e-4)
        assert sind(270) == pytest.approx(-1.0)

    def test_cosd_quadrants(self):
        assert cosd(0) == pytest.approx(1.0)
        assert cosd(90) == pytest.approx(0.0, abs=1e-4)
        assert cosd(180) == pytest.approx(-1.0)
        assert cosd(270) == pytest.approx(0.0, abs=1e-4)

    def test_pythagorean_identity(self):
        """sin^2 + cos^2 should be 1 for arbitrary angles."""
        for deg in (-725.3, -45.0, 12.5, 359.9, 1000.0):
            assert sind(deg) ** 2 + cosd(deg) ** 2 == pytest.approx(1.0)

    def test_tand(self):
        assert tand(45) == pytest.approx(1.0)
        assert tand(-45) == pytest.approx(-1.0)


class TestInverseFunctions:
    """Tests for asind, acosd and atan2d."""

    def test_asind_and_acosd_endpoints(self):
        assert asind(1) == pytest.approx(90.0)
        assert asind(-1) == pytest.approx(-90.0)
        assert acosd(-1) == pytest.approx(180.0)
        assert acosd(1) == pytest.approx(0.0)

    def test_inputs_slightly_outside_domain_are_clamped(self):
        """Floating-point drift past +/-1 must not produce NaN."""
        assert asind(1.0000000001) == pytest.approx(90.0)
        assert asind(-1.0000000001) == pytest.approx(-90.0)
        assert acosd(-1.0000000001) == pytest.approx(180.0)
        assert acosd(1.0000000001) == pytest.approx(0.0)

    def test_atan2d_quadrants(self):
        assert atan2d(1, 1) == pytest.approx(45.0)
        assert atan2d(1, -1) == pytest.approx(135.0)
        assert atan2d(-1, -1) == pytest.approx(-135.0)
        assert atan2d(0, 1) == pytest.approx(0.0)
