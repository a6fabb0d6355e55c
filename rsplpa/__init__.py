"""eUICC remote SIM provisioning: TLV encoding, ES10b/ES10c card commands and ES9+/ES11 server exchanges."""

__version__ = "0.1.0"