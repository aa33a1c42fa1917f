"""Network-intelligence lookups and the records they produce."""

from .domains import format_domain_age, hostname_from_url, registrable_domain
from .homograph import check_homograph
from .network import dns_geoip
from .registration import RdapBootstrap, default_bootstrap, merge_registration, rdap_lookup
from .threats import safe_browsing

__all__ = [
    "RdapBootstrap",
    "check_homograph",
    "default_bootstrap",
    "dns_geoip",
    "format_domain_age",
    "hostname_from_url",
    "merge_registration",
    "rdap_lookup",
    "registrable_domain",
    "safe_browsing",
]
