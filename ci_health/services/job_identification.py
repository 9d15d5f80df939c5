"""
Classification of CI job names into platform tags.

Job names are dash-delimited, e.g.
"periodic-ci-release-4.9-e2e-aws-ovn-upgrade". A job maps to at most one
infrastructure platform plus any number of orthogonal configuration tags.
"""
import logging
import re
from typing import List, Tuple

logger = logging.getLogger(__name__)

# Checked in order; the first match wins so more specific names come first.
INFRASTRUCTURE_PLATFORMS: List[Tuple[str, re.Pattern]] = [
    ("aws", re.compile(r"(^|-)aws(-|$)")),
    ("azure", re.compile(r"(^|-)azure(-|$)")),
    ("gcp", re.compile(r"(^|-)gcp(-|$)")),
    ("libvirt", re.compile(r"(^|-)libvirt(-|$)")),
    ("metal-assisted", re.compile(r"(^|-)metal-assisted(-|$)")),
    ("metal-ipi", re.compile(r"(^|-)metal-ipi(-|$)")),
    ("metal-upi", re.compile(r"(^|-)metal(-upi)?(-|$)")),
    ("openstack", re.compile(r"(^|-)openstack(-|$)")),
    ("ovirt", re.compile(r"(^|-)ovirt(-|$)")),
    ("vsphere-upi", re.compile(r"(^|-)vsphere-upi(-|$)")),
    ("vsphere", re.compile(r"(^|-)vsphere(-|$)")),
]

# Every matching tag is reported, in this order.
CONFIGURATION_TAGS: List[Tuple[str, re.Pattern]] = [
    ("ovn", re.compile(r"(^|-)ovn(-|$)")),
    ("sdn", re.compile(r"(^|-)sdn(-|$)")),
    ("fips", re.compile(r"(^|-)fips(-|$)")),
    ("proxy", re.compile(r"(^|-)proxy(-|$)")),
    ("upgrade", re.compile(r"(^|-)upgrade(-|$)")),
    ("serial", re.compile(r"(^|-)serial(-|$)")),
    ("techpreview", re.compile(r"(^|-)techpreview(-|$)")),
    ("ppc64le", re.compile(r"(^|-)ppc64le(-|$)")),
    ("s390x", re.compile(r"(^|-)s390x(-|$)")),
    ("arm64", re.compile(r"(^|-)arm64(-|$)")),
    ("single-node", re.compile(r"(^|-)single-node(-|$)")),
]


def find_platform(job_name: str) -> List[str]:
    """
    Platform tags for a job name.

    Args:
        job_name: Full CI job name

    Returns:
        Infrastructure tag (if any) followed by configuration tags, possibly empty
    """
    name = job_name.lower()
    platforms = []

    for tag, pattern in INFRASTRUCTURE_PLATFORMS:
        if pattern.search(name):
            platforms.append(tag)
            break

    for tag, pattern in CONFIGURATION_TAGS:
        if pattern.search(name):
            platforms.append(tag)

    if not platforms:
        logger.debug(f"Unknown platform for job: {job_name}")
    return platforms
