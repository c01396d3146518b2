from rest_framework.throttling import UserRateThrottle, AnonRateThrottle


class BurstRateThrottle(UserRateThrottle):
    """
    Short-window limit for every caller.
    Scope: 'burst'
    """
    scope = 'burst'


class SustainedRateThrottle(UserRateThrottle):
    """
    General API usage.
    """
    scope = 'sustained'


class OrderPlacementThrottle(AnonRateThrottle):
    """
    Checkout is public; cap anonymous order submissions per IP.
    """
    scope = 'orders'
