import structlog

from metalbill.models import HARDWARE_RESERVATION, UsageMap, UsageRecord

logger = structlog.get_logger()

GATEWAY_PROJECT = "gateway"
KUBO_BUCKET = "gateway-kubo"
LB_BUCKET = "gateway-lb"


def gateway_bucket(usage: "UsageRecord") -> "str | None":
    """
    returns the synthetic project a gateway line item belongs to,
    Kubo nodes first, then load balancers. None when neither matches.
    """
    reservation = usage.type == HARDWARE_RESERVATION

    if usage.name.startswith("ipfs-") or (reservation and "medium" in usage.plan):
        return KUBO_BUCKET
    if usage.name.startswith("gateway-") or (reservation and "small" in usage.plan):
        return LB_BUCKET
    return None


def split_gateways(usages: "UsageMap") -> "UsageMap":
    """
    re-keys the usages of the gateway project into the Kubo and load
    balancer buckets. Every other project is discarded, as are gateway
    line items matching neither bucket.
    """
    split: "UsageMap" = {KUBO_BUCKET: [], LB_BUCKET: []}
    dropped = 0

    for usage in usages.get(GATEWAY_PROJECT, []):
        bucket = gateway_bucket(usage)
        if bucket is None:
            dropped += 1
            continue
        split[bucket].append(usage)

    if dropped:
        logger.info("gateway_usages_unmatched", count=dropped)

    return split
