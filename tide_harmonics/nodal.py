"""
Nodal factors and equilibrium arguments.

For one constituent over one prediction interval this module produces:

- f: node factor, a dimensionless amplitude correction
- u: nodal phase correction in degrees
- V0: equilibrium argument at the start of the interval, in degrees

f and u change slowly over the 18.6-year cycle of the lunar node, so they are
evaluated once, from the arguments at the interval midpoint. V0 comes from the
arguments at the interval start.

References:
- Schureman, P. (1958) "Manual of Harmonic Analysis and Prediction of Tides",
  equations 73-79, 144, 149, 206, 215, 227 and 235
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence

import numpy as np

from .astronomy import LUNAR_INCLINATION, OBLIQUITY, AstronomicalArguments
from .constituents import (
    ARGUMENT_TERMS,
    NODAL_TERMS,
    ConstituentDefinition,
    NodeFormula,
    resolution_order,
)
from .exceptions import CatalogIntegrityError
from .trig import acosd, asind, atan2d, cosd, sind, tand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodalFactors:
    f: float
    u: float
    v0: float


@dataclass(frozen=True)
class NodeTerms:
    """
    Node-dependent angles derived from the longitude of the lunar node.

    Attributes:
        I: Inclination of the lunar orbit to the celestial equator
        nu: Right ascension of the lunar intersection
        xi: Longitude in the moon's orbit of the lunar intersection
        nu_prime: Term in the argument of K1
        two_nu_double_prime: Term in the argument of K2
        Q: Term in the argument of M1
        Qu: Term in the argument of M1
        Qa: Amplitude term of M1
        R: Term in the argument of L2
        Ra: Amplitude term of L2
    """
    I: float
    nu: float
    xi: float
    nu_prime: float
    two_nu_double_prime: float
    Q: float
    Qu: float
    Qa: float
    R: float
    Ra: float

    @classmethod
    def from_arguments(cls, args: AstronomicalArguments) -> "NodeTerms":
        N = args.N

        I = acosd(cosd(OBLIQUITY) * cosd(LUNAR_INCLINATION)
                  - sind(OBLIQUITY) * sind(LUNAR_INCLINATION) * cosd(N))
        sin_I = sind(I)

        nu = asind(sind(LUNAR_INCLINATION) * sind(N) / sin_I)

        sin_omega = sind(OBLIQUITY) * sind(N) / sin_I
        cos_omega = cosd(N) * cosd(nu) + sind(N) * sind(nu) * cosd(OBLIQUITY)
        xi = N - atan2d(sin_omega, cos_omega)

        nu_prime = atan2d(sind(2 * I) * sind(nu), sind(2 * I) * cosd(nu) + 0.3347)
        two_nu_double_prime = atan2d(sin_I ** 2 * sind(2 * nu),
                                     sin_I ** 2 * cosd(2 * nu) + 0.0727)

        P = args.p - xi
        Q = atan2d(0.483 * sind(P), cosd(P))
        Qa = 1.0 / np.sqrt(2.31 + 1.435 * cosd(2 * P))

        tan_half_I = tand(I / 2)
        R = atan2d(sind(2 * P), 1.0 / (6.0 * tan_half_I ** 2) - cosd(2 * P))
        Ra = 1.0 / np.sqrt(1.0 - 12.0 * tan_half_I ** 2 * cosd(2 * P)
                           + 36.0 * tan_half_I ** 4)

        return cls(
            I=float(I), nu=float(nu), xi=float(xi), nu_prime=float(nu_prime),
            two_nu_double_prime=float(two_nu_double_prime), Q=float(Q),
            Qu=float(P - Q), Qa=float(Qa), R=float(R), Ra=float(Ra),
        )

    def phase_terms(self):
        """Angles the 7-term nodal vector is applied to, in order."""
        return (self.xi, self.nu, self.nu_prime, self.two_nu_double_prime,
                self.Q, self.R, self.Qu)


def _f_o1(t: NodeTerms) -> float:
    return sind(t.I) * cosd(t.I / 2) ** 2 / 0.38


def _f_m2(t: NodeTerms) -> float:
    return cosd(t.I / 2) ** 4 / 0.9154


F_FORMULAS: Dict[NodeFormula, Callable[[NodeTerms], float]] = {
    NodeFormula.UNITY: lambda t: 1.0,
    NodeFormula.EQ_73: lambda t: (2.0 / 3.0 - sind(t.I) ** 2) / 0.5021,
    NodeFormula.EQ_74: lambda t: sind(t.I) ** 2 / 0.1578,
    NodeFormula.EQ_75: _f_o1,
    NodeFormula.EQ_76: lambda t: sind(2 * t.I) / 0.7214,
    NodeFormula.EQ_77: lambda t: sind(t.I) * sind(t.I / 2) ** 2 / 0.0164,
    NodeFormula.EQ_78: _f_m2,
    NodeFormula.EQ_79: lambda t: sind(t.I) ** 2 / 0.1565,
    NodeFormula.EQ_144: lambda t: ((1.0 - 10.0 * sind(t.I / 2) ** 2 + 15.0 * sind(t.I / 2) ** 4)
                                   * cosd(t.I / 2) ** 2 / 0.5873),
    NodeFormula.EQ_149: lambda t: cosd(t.I / 2) ** 6 / 0.8758,
    NodeFormula.EQ_206: lambda t: _f_o1(t) / t.Qa,
    NodeFormula.EQ_215: lambda t: _f_m2(t) / t.Ra,
    NodeFormula.EQ_227: lambda t: np.sqrt(0.8965 * sind(2 * t.I) ** 2
                                          + 0.6001 * sind(2 * t.I) * cosd(t.nu) + 0.1006),
    NodeFormula.EQ_235: lambda t: np.sqrt(19.0444 * sind(t.I) ** 4
                                          + 2.7702 * sind(t.I) ** 2 * cosd(2 * t.nu) + 0.0981),
}


def equilibrium_argument(arguments: Sequence[float], args: AstronomicalArguments) -> float:
    """V0 in [0, 360) from a 6-term vector over (T, s, h, p, p1, constant)."""
    v0 = (arguments[0] * args.tau + arguments[1] * args.s + arguments[2] * args.h
          + arguments[3] * args.p + arguments[4] * args.p1 + arguments[5])
    return v0 % 360.0


def _basic_factors(definition: ConstituentDefinition,
                   args_start: AstronomicalArguments,
                   terms: NodeTerms) -> NodalFactors:
    if definition.arguments is None or len(definition.arguments) != ARGUMENT_TERMS:
        raise CatalogIntegrityError(
            f"Basic constituent {definition.name} has no {ARGUMENT_TERMS}-term argument vector"
        )
    if definition.nodal is None or len(definition.nodal) != NODAL_TERMS:
        raise CatalogIntegrityError(
            f"Basic constituent {definition.name} has no {NODAL_TERMS}-term nodal vector"
        )
    formula = F_FORMULAS.get(definition.f_formula)
    if formula is None:
        raise CatalogIntegrityError(
            f"Basic constituent {definition.name} has unknown node factor formula "
            f"{definition.f_formula!r}"
        )

    u = sum(c * angle for c, angle in zip(definition.nodal, terms.phase_terms()))
    return NodalFactors(
        f=float(formula(terms)),
        u=float(u),
        v0=equilibrium_argument(definition.arguments, args_start),
    )


def _combined_factors(definition: ConstituentDefinition,
                      resolved: Mapping[str, NodalFactors]) -> NodalFactors:
    f, u, v0 = 1.0, 0.0, 0.0
    for name, exponent in definition.components:
        base = resolved.get(name)
        if base is None:
            raise CatalogIntegrityError(
                f"{definition.kind.value} constituent {definition.name} needs {name}, "
                "which has not been resolved"
            )
        f *= base.f ** abs(exponent)
        u += exponent * base.u
        v0 += exponent * base.v0
    return NodalFactors(f=f, u=u, v0=v0 % 360.0)


def compute(definition: ConstituentDefinition,
            args_start: AstronomicalArguments,
            args_mid: AstronomicalArguments,
            resolved: Optional[Mapping[str, NodalFactors]] = None,
            terms: Optional[NodeTerms] = None) -> NodalFactors:
    """
    Compute f, u and V0 for one constituent over one interval.

    Args:
        definition: Constituent to evaluate
        args_start: Astronomical arguments at the interval start (for V0)
        args_mid: Astronomical arguments at the interval midpoint (for f and u)
        resolved: Factors already computed for this interval, required for
            shallow and compound constituents
        terms: Precomputed NodeTerms for args_mid, to avoid re-deriving them

    Returns:
        NodalFactors(f, u, v0)

    Raises:
        CatalogIntegrityError: If a Basic definition lacks its coefficient
            vectors or formula, or a component has not been resolved
    """
    if definition.is_basic:
        if terms is None:
            terms = NodeTerms.from_arguments(args_mid)
        return _basic_factors(definition, args_start, terms)
    return _combined_factors(definition, resolved or {})


def compute_all(definitions: Mapping[str, ConstituentDefinition],
                args_start: AstronomicalArguments,
                args_mid: AstronomicalArguments,
                order: Optional[Sequence[str]] = None) -> Dict[str, NodalFactors]:
    """
    Compute factors for every constituent of a catalog over one interval.

    Args:
        definitions: Constituent definitions by name
        args_start: Astronomical arguments at the interval start
        args_mid: Astronomical arguments at the interval midpoint
        order: Resolution order; derived from the definitions when omitted

    Returns:
        Dictionary mapping constituent names to NodalFactors
    """
    if order is None:
        order = resolution_order(definitions)
    terms = NodeTerms.from_arguments(args_mid)
    logger.debug("Node terms at N=%.4f: I=%.4f nu=%.4f xi=%.4f", args_mid.N, terms.I, terms.nu, terms.xi)

    factors: Dict[str, NodalFactors] = {}
    for name in order:
        factors[name] = compute(definitions[name], args_start, args_mid, factors, terms)
    return factors
