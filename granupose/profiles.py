"""EC2 OSC address profiles.

EC2 releases differ in how OSC addresses are set up: v1.2 needs every
address mapped by hand in the engine, v1.3+ answers on default addresses
named after each parameter, and a custom profile covers user-edited
address tables.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

EC2_VERSIONS = ("v1.2", "v1.3+", "custom")
EC2_CAPABILITIES = ("advancedOsc", "lfoModulation", "morphTimeOsc")


@dataclass(frozen=True)
class Ec2OscProfile:
    id: str
    version: str
    name: str
    notes: str
    capabilities: Dict[str, bool] = field(default_factory=dict)

    def supports(self, capability: str) -> bool:
        return bool(self.capabilities.get(capability, False))


EC2_OSC_PROFILES = [
    Ec2OscProfile(
        id="ec2-v1.2-manual",
        version="v1.2",
        name="EC2 v1.2 (Manual Addresses)",
        notes="Requires manual OSC address mapping in EC2.",
        capabilities={"advancedOsc": False, "lfoModulation": False, "morphTimeOsc": False},
    ),
    Ec2OscProfile(
        id="ec2-v1.3-default",
        version="v1.3+",
        name="EC2 v1.3+ (Default Addresses)",
        notes="Uses default OSC addresses matching parameter names.",
        capabilities={"advancedOsc": True, "lfoModulation": True, "morphTimeOsc": True},
    ),
    Ec2OscProfile(
        id="ec2-custom",
        version="custom",
        name="Custom OSC Profile",
        notes="Use when EC2 OSC addresses are customized.",
        capabilities={"advancedOsc": True, "lfoModulation": True, "morphTimeOsc": True},
    ),
]


def get_profile_by_id(profile_id: str) -> Optional[Ec2OscProfile]:
    for profile in EC2_OSC_PROFILES:
        if profile.id == profile_id:
            return profile
    return None


def get_profiles_for_version(version: str) -> List[Ec2OscProfile]:
    return [p for p in EC2_OSC_PROFILES if p.version == version]


def get_default_profile_id_for_version(version: str) -> str:
    """First profile id for *version*, falling back to the first profile."""
    matches = get_profiles_for_version(version)
    if matches:
        return matches[0].id
    return EC2_OSC_PROFILES[0].id
