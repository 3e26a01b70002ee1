"""Helpers shared by provisioning and verification"""
import ipaddress

APEX = "@"


def relative_record_name(name: str, root_domain: str) -> str:
    """
    Convert a fully qualified record name into the RR used by the
    authoritative DNS zone of ``root_domain``.

    ``example.com`` -> ``@``; ``_acme.sub.example.com`` -> ``_acme.sub``.
    Names outside the zone are returned unchanged.
    """
    name = name.rstrip(".").lower()
    root = root_domain.rstrip(".").lower()
    if name == root:
        return APEX
    suffix = f".{root}"
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name


def infer_record_type(target: str) -> str:
    """A for IPv4 literals, AAAA for IPv6 literals, CNAME for everything else"""
    try:
        address = ipaddress.ip_address(target.strip())
    except ValueError:
        return "CNAME"
    return "A" if address.version == 4 else "AAAA"


def normalize_record_value(record_type: str, value: str) -> str:
    """Comparable form of a record value (quotes and trailing dots stripped)"""
    value = value.strip().strip('"')
    if record_type.upper() == "CNAME":
        value = value.rstrip(".").lower()
    return value
