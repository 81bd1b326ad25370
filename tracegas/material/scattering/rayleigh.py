from tracegas.material.elements import (
    AtmosphereElement,
    Capability,
    ElementKind,
    register_element_type,
)


@register_element_type(ElementKind.RAYLEIGH_SCATTERING, Capability.RAYLEIGH_SCATTERING)
class RayleighScattering(AtmosphereElement):
    """Marks an atmosphere as Rayleigh scattering; carries no state."""

    def __repr__(self) -> str:
        return "RayleighScattering()"
