"""
Tidal constituent catalog.

Each constituent is one of three kinds:

- Basic: defined directly by a six-term equilibrium-argument vector over
  (T, s, h, p, p1, constant), a seven-term nodal-phase vector over
  (xi, nu, nu', 2nu'', Q, R, Qu) and a node-factor formula from Schureman (1958).
- Shallow: an overtide of a single constituent (M4 = M2 squared).
- Compound: a product of several constituents raised to integer exponents
  (MS4 = M2 * S2, 2MK3 = M2^2 / K1).

Shallow and compound constituents take their f, u and V0 from their
components, so components must be resolved first (see resolution_order).

Speeds are in degrees per hour.
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .exceptions import CatalogIntegrityError, RecordDecodeError


class ConstituentKind(str, Enum):
    BASIC = "Basic"
    SHALLOW = "Shallow"
    COMPOUND = "Compound"


class NodeFormula(int, Enum):
    """
    Node factor formulas, numbered after the equations in Schureman (1958).

    Each member selects one pure function of the node-dependent angles; the
    function table lives in nodal.F_FORMULAS.
    """
    UNITY = 1
    EQ_73 = 73
    EQ_74 = 74
    EQ_75 = 75
    EQ_76 = 76
    EQ_77 = 77
    EQ_78 = 78
    EQ_79 = 79
    EQ_144 = 144
    EQ_149 = 149
    EQ_206 = 206
    EQ_215 = 215
    EQ_227 = 227
    EQ_235 = 235


ARGUMENT_TERMS = 6
NODAL_TERMS = 7


@dataclass(frozen=True)
class ConstituentDefinition:
    """
    One named tidal harmonic.

    Attributes:
        name: Constituent name, upper case (e.g. 'M2')
        kind: Basic, Shallow or Compound
        speed: Angular speed in degrees per hour
        arguments: V0 coefficients over (T, s, h, p, p1, constant), Basic only
        nodal: u coefficients over (xi, nu, nu', 2nu'', Q, R, Qu), Basic only
        f_formula: Node factor formula, Basic only
        components: Ordered (constituent name, exponent) pairs, Shallow/Compound only
    """
    name: str
    kind: ConstituentKind
    speed: float
    arguments: Optional[Tuple[float, ...]] = None
    nodal: Optional[Tuple[float, ...]] = None
    f_formula: Optional[NodeFormula] = None
    components: Tuple[Tuple[str, int], ...] = ()

    @property
    def is_basic(self) -> bool:
        return self.kind is ConstituentKind.BASIC


# Order of the 13 base constituents a "Compound" definition string refers to
BASES_ORDER = (
    'O1', 'K1', 'P1', 'M2', 'S2', 'N2', 'L2', 'K2', 'Q1', 'NU2', 'S1', 'M1', 'LDA2'
)


def _basic(name, speed, arguments, nodal, f_formula):
    nodal = tuple(float(x) for x in nodal)
    nodal += (0.0,) * (NODAL_TERMS - len(nodal))
    return ConstituentDefinition(
        name=name,
        kind=ConstituentKind.BASIC,
        speed=speed,
        arguments=tuple(float(x) for x in arguments),
        nodal=nodal,
        f_formula=NodeFormula(f_formula),
    )


def _combination(name, speed, *components):
    kind = ConstituentKind.SHALLOW if len(components) == 1 else ConstituentKind.COMPOUND
    return ConstituentDefinition(
        name=name,
        kind=kind,
        speed=speed,
        components=tuple(components),
    )


_STANDARD = [
    # Diurnal
    _basic('O1', 13.9430356, (1, -2, 1, 0, 0, 90), (2, -1), 75),
    _basic('K1', 15.0410686, (1, 0, 1, 0, 0, -90), (0, 0, -1), 227),
    _basic('P1', 14.9589314, (1, 0, -1, 0, 0, 90), (), 1),
    _basic('Q1', 13.3986609, (1, -3, 1, 1, 0, 90), (2, -1), 75),
    _basic('S1', 15.0, (1, 0, 0, 0, 0, 0), (), 1),
    _basic('M1', 14.4966939, (1, -1, 1, 1, 0, -90), (0, -1, 0, 0, 0, 0, -1), 206),
    _basic('J1', 15.5854433, (1, 1, 1, -1, 0, -90), (0, -1), 76),
    _basic('OO1', 16.1391017, (1, 2, 1, 0, 0, -90), (-2, -1), 77),
    _basic('RHO1', 13.4715145, (1, -3, 3, -1, 0, 90), (2, -1), 75),
    _basic('2Q1', 12.8542862, (1, -4, 1, 2, 0, 90), (2, -1), 75),
    # Semidiurnal
    _basic('M2', 28.9841042, (2, -2, 2, 0, 0, 0), (2, -2), 78),
    _basic('S2', 30.0, (2, 0, 0, 0, 0, 0), (), 1),
    _basic('N2', 28.4397295, (2, -3, 2, 1, 0, 0), (2, -2), 78),
    _basic('L2', 29.5284789, (2, -1, 2, -1, 0, 180), (2, -2, 0, 0, 0, -1), 215),
    _basic('K2', 30.0821373, (2, 0, 2, 0, 0, 0), (0, 0, 0, -1), 235),
    _basic('NU2', 28.5125831, (2, -3, 4, -1, 0, 0), (2, -2), 78),
    _basic('LDA2', 29.4556253, (2, -1, 0, 1, 0, 180), (2, -2), 78),
    _basic('2N2', 27.8953548, (2, -4, 2, 2, 0, 0), (2, -2), 78),
    _basic('MU2', 27.9682084, (2, -4, 4, 0, 0, 0), (2, -2), 78),
    _basic('T2', 29.9589333, (2, 0, -1, 0, 1, 0), (), 1),
    _basic('R2', 30.0410667, (2, 0, 1, 0, -1, 180), (), 1),
    # Terdiurnal
    _basic('M3', 43.4761563, (3, -3, 3, 0, 0, 0), (3, -3), 149),
    # Long period
    _basic('MM', 0.5443747, (0, 1, 0, -1, 0, 0), (), 73),
    _basic('MF', 1.0980331, (0, 2, 0, 0, 0, 0), (-2,), 74),
    _basic('SA', 0.0410686, (0, 0, 1, 0, 0, 0), (), 1),
    _basic('SSA', 0.0821373, (0, 0, 2, 0, 0, 0), (), 1),
    # Overtides
    _combination('M4', 57.9682084, ('M2', 2)),
    _combination('M6', 86.9523126, ('M2', 3)),
    _combination('M8', 115.9364168, ('M4', 2)),
    _combination('S4', 60.0, ('S2', 2)),
    _combination('S6', 90.0, ('S2', 3)),
    # Compound tides
    _combination('MS4', 58.9841042, ('M2', 1), ('S2', 1)),
    _combination('MN4', 57.4238337, ('M2', 1), ('N2', 1)),
    _combination('MK3', 44.0251729, ('M2', 1), ('K1', 1)),
    _combination('2MK3', 42.9271398, ('M2', 2), ('K1', -1)),
    _combination('MO3', 42.9271398, ('M2', 1), ('O1', 1)),
    _combination('2SM2', 31.0158958, ('S2', 2), ('M2', -1)),
    _combination('MSF', 1.0158958, ('S2', 1), ('M2', -1)),
    _combination('2MS6', 87.9682084, ('M2', 2), ('S2', 1)),
    _combination('2MN6', 86.4079380, ('M2', 2), ('N2', 1)),
]

STANDARD_DEFINITIONS: Mapping[str, ConstituentDefinition] = MappingProxyType(
    {d.name: d for d in _STANDARD}
)


def standard_definitions() -> Mapping[str, ConstituentDefinition]:
    """Return the built-in constituent table (read-only)."""
    return STANDARD_DEFINITIONS


def _parse_integer(token: str, name: str) -> int:
    value = float(token)
    if value != int(value):
        raise RecordDecodeError(f"{name}: non-integer coefficient {token!r}")
    return int(value)


def parse_definition(name: str, text: str, speed: float) -> ConstituentDefinition:
    """
    Decode a textual constituent definition as carried by a harmonics database.

    Accepted forms:
        "Basic T s h p p1 c  xi nu nu' 2nu'' Q R [Qu]  f"
        "Compound c1 ... c13"  (exponents over BASES_ORDER)
        "Shallow NAME EXP [NAME EXP ...]"

    Args:
        name: Constituent name
        text: Definition string
        speed: Angular speed in degrees per hour

    Returns:
        ConstituentDefinition

    Raises:
        RecordDecodeError: If the definition is malformed
    """
    name = name.strip().upper()
    tokens = text.split()
    if not tokens:
        raise RecordDecodeError(f"{name}: empty definition")

    head = tokens[0].capitalize()
    values = tokens[1:]
    try:
        if head == ConstituentKind.BASIC.value:
            if len(values) not in (ARGUMENT_TERMS + NODAL_TERMS,
                                   ARGUMENT_TERMS + NODAL_TERMS + 1):
                raise RecordDecodeError(
                    f"{name}: Basic definition needs 13 or 14 values, got {len(values)}"
                )
            numbers = [float(v) for v in values]
            arguments = numbers[:ARGUMENT_TERMS]
            nodal = numbers[ARGUMENT_TERMS:-1]
            return _basic(name, speed, arguments, nodal, _parse_integer(values[-1], name))

        if head == ConstituentKind.COMPOUND.value:
            if len(values) != len(BASES_ORDER):
                raise RecordDecodeError(
                    f"{name}: Compound definition needs {len(BASES_ORDER)} values, "
                    f"got {len(values)}"
                )
            components = tuple(
                (base, _parse_integer(v, name))
                for base, v in zip(BASES_ORDER, values)
                if float(v) != 0.0
            )
            if not components:
                raise RecordDecodeError(f"{name}: Compound definition has no components")
            return ConstituentDefinition(
                name=name, kind=ConstituentKind.COMPOUND, speed=speed,
                components=components,
            )

        if head == ConstituentKind.SHALLOW.value:
            if not values or len(values) % 2:
                raise RecordDecodeError(f"{name}: Shallow definition needs NAME EXP pairs")
            components = tuple(
                (values[i].upper(), _parse_integer(values[i + 1], name))
                for i in range(0, len(values), 2)
            )
            return ConstituentDefinition(
                name=name, kind=ConstituentKind.SHALLOW, speed=speed,
                components=components,
            )
    except ValueError as e:
        raise RecordDecodeError(f"{name}: {e}") from e

    raise RecordDecodeError(f"{name}: unknown constituent kind {tokens[0]!r}")


def verify_definitions(definitions: Mapping[str, ConstituentDefinition]) -> None:
    """
    Check every definition before any prediction is attempted.

    Basic constituents must carry both coefficient vectors (6 and 7 terms)
    and a known node factor formula; combinations must name existing
    constituents and must not depend on themselves.

    Raises:
        CatalogIntegrityError: On the first violation found
    """
    for name, d in definitions.items():
        if d.is_basic:
            if d.arguments is None or len(d.arguments) != ARGUMENT_TERMS:
                raise CatalogIntegrityError(
                    f"Basic constituent {name} lacks a {ARGUMENT_TERMS}-term argument vector"
                )
            if d.nodal is None or len(d.nodal) != NODAL_TERMS:
                raise CatalogIntegrityError(
                    f"Basic constituent {name} lacks a {NODAL_TERMS}-term nodal vector"
                )
            if not isinstance(d.f_formula, NodeFormula):
                raise CatalogIntegrityError(
                    f"Basic constituent {name} has no node factor formula"
                )
        else:
            if not d.components:
                raise CatalogIntegrityError(f"{d.kind.value} constituent {name} has no components")
            for component, _ in d.components:
                if component not in definitions:
                    raise CatalogIntegrityError(
                        f"{d.kind.value} constituent {name} refers to unknown constituent {component}"
                    )
    resolution_order(definitions)


def resolution_order(definitions: Mapping[str, ConstituentDefinition]) -> Tuple[str, ...]:
    """
    Order constituent names so every component precedes the constituents built on it.

    Raises:
        CatalogIntegrityError: If a component is missing or the combination graph has a cycle
    """
    order: List[str] = []
    state: Dict[str, int] = {}  # 1 = in progress, 2 = done

    def visit(name: str, path: List[str]):
        mark = state.get(name)
        if mark == 2:
            return
        if mark == 1:
            cycle = path[path.index(name):] + [name]
            raise CatalogIntegrityError(
                "Constituent dependency cycle: " + " -> ".join(cycle)
            )
        definition = definitions.get(name)
        if definition is None:
            raise CatalogIntegrityError(
                f"Constituent {path[-1]} refers to unknown constituent {name}"
            )
        state[name] = 1
        path.append(name)
        for component, _ in definition.components:
            visit(component, path)
        path.pop()
        state[name] = 2
        order.append(name)

    for name in definitions:
        visit(name, [])
    return tuple(order)


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _format_definition(definition: ConstituentDefinition) -> str:
    """Inverse of parse_definition."""
    if definition.is_basic:
        values = list(definition.arguments) + list(definition.nodal)
        return " ".join(
            ["Basic"] + [_format_number(v) for v in values] + [str(int(definition.f_formula))]
        )
    if definition.kind is ConstituentKind.COMPOUND:
        exponents = dict(definition.components)
        if set(exponents) <= set(BASES_ORDER):
            return " ".join(["Compound"] + [str(exponents.get(b, 0)) for b in BASES_ORDER])
    pairs = []
    for name, exponent in definition.components:
        pairs += [name, str(exponent)]
    return " ".join(["Shallow"] + pairs)
