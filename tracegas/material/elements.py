"""
Atmosphere elements are the constituents an EarthAtmosphere carries: gas
absorbers, a Rayleigh scattering marker, and (later) aerosols and clouds.

Downstream code never asks what an element *is*, only what it *provides*:
every element kind is registered with a Capability bitmask, and the
functions below match against those bits.
"""

from collections.abc import Callable, Iterable
from enum import Enum, Flag, auto
from typing import ClassVar, TypeVar


class Capability(Flag):
    GAS_ABSORPTION = auto()
    RAYLEIGH_SCATTERING = auto()
    AEROSOL_SCATTERING = auto()
    CLOUD_SCATTERING = auto()


class ElementKind(Enum):
    RAYLEIGH_SCATTERING = "rayleigh_scattering"
    GAS_ABSORBER = "gas_absorber"
    AEROSOL = "aerosol"
    CLOUD = "cloud"


ELEMENT_CAPABILITIES: dict[ElementKind, Capability] = {}


class AtmosphereElement:
    kind: ClassVar[ElementKind]

    @property
    def capabilities(self) -> Capability:
        return ELEMENT_CAPABILITIES[self.kind]

    def satisfies(self, capability: Capability) -> bool:
        # the empty flag is contained in every bitmask
        if not capability:
            raise ValueError("Cannot match against an empty capability.")

        return capability in self.capabilities


ElementType = TypeVar("ElementType", bound=type[AtmosphereElement])


def register_element_type(
    kind: ElementKind, capabilities: Capability
) -> Callable[[ElementType], ElementType]:
    def register(element_class: ElementType) -> ElementType:
        if kind in ELEMENT_CAPABILITIES:
            raise ValueError(f"Element kind {kind.value!r} is already registered.")

        element_class.kind = kind
        ELEMENT_CAPABILITIES[kind] = capabilities

        return element_class

    return register


def any_matches_capability(
    elements: Iterable[AtmosphereElement], capability: Capability
) -> bool:
    return any(element.satisfies(capability) for element in elements)


def elements_with_capability(
    elements: Iterable[AtmosphereElement], capability: Capability
) -> list[AtmosphereElement]:
    return [element for element in elements if element.satisfies(capability)]
